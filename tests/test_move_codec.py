import unittest

import chess

from llmchess_play.move_codec import Malformed, Squares, decode, encode, extract_answer


class EncodeDecodeTests(unittest.TestCase):
    def test_decode_is_left_inverse_of_encode(self):
        for from_sq in ("a1", "e2", "h8", "d5"):
            for to_sq in chess.SQUARE_NAMES[::7]:
                self.assertEqual(decode(encode(from_sq, to_sq)), Squares(from_sq, to_sq))

    def test_encode_rejects_bad_square(self):
        with self.assertRaises(ValueError):
            encode("i9", "e4")

    def test_decode_normalizes_case(self):
        self.assertEqual(decode("E2E4"), Squares("e2", "e4"))

    def test_decode_does_not_reject_null_moves(self):
        self.assertEqual(decode("e2e2"), Squares("e2", "e2"))

    def test_decode_malformed_inputs_never_raise(self):
        cases = {
            "": "empty",
            "e2e": "bad_length",
            "e7e8q": "bad_length",
            "i2e4": "bad_format",
            "e9e4": "bad_format",
            "e2 4": "bad_format",
        }
        for token, reason in cases.items():
            result = decode(token)
            self.assertIsInstance(result, Malformed, token)
            self.assertEqual(result.reason, reason, token)
        self.assertEqual(decode(None).reason, "not_a_string")
        self.assertEqual(decode(1234).reason, "not_a_string")


class ExtractAnswerTests(unittest.TestCase):
    def test_extracts_token_after_reasoning(self):
        self.assertEqual(extract_answer("The centre matters.\nANSWER: e2e4"), "e2e4")

    def test_case_insensitive_and_lowercased(self):
        self.assertEqual(extract_answer("answer: G1F3"), "g1f3")

    def test_markdown_bold_is_tolerated(self):
        self.assertEqual(extract_answer("ANSWER: **e7e5**"), "e7e5")

    def test_last_answer_wins(self):
        self.assertEqual(extract_answer("ANSWER: e2e4 ... actually ANSWER: d2d4"), "d2d4")

    def test_missing_answer(self):
        self.assertIsNone(extract_answer("I would play the king's pawn, e4."))
        self.assertIsNone(extract_answer(""))
        self.assertIsNone(extract_answer(None))


if __name__ == "__main__":
    unittest.main()
