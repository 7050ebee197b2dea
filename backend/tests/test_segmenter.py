"""Tests for text segmentation."""

from __future__ import annotations

import unittest

from storygraph.analysis.segmenter import segment_text, truncate_text


class SegmenterTests(unittest.TestCase):
    def test_concatenated_segments_reproduce_truncated_input(self) -> None:
        text = "".join(chr(ord("a") + (i % 26)) for i in range(2_345))

        segments = segment_text(text, max_input_length=2_000, chunk_size=300)

        self.assertEqual("".join(s.text for s in segments), text[:2_000])
        self.assertEqual([s.index for s in segments], list(range(7)))
        self.assertTrue(all(len(s.text) <= 300 for s in segments))
        self.assertEqual(len(segments[-1].text), 200)

    def test_short_text_is_a_single_segment(self) -> None:
        segments = segment_text("Alice spoke to Bob.", max_input_length=100, chunk_size=50)

        self.assertEqual(len(segments), 1)
        self.assertEqual(segments[0].text, "Alice spoke to Bob.")

    def test_disabled_chunking_sends_whole_truncated_text(self) -> None:
        text = "x" * 500

        segments = segment_text(text, max_input_length=400, chunk_size=None)

        self.assertEqual(len(segments), 1)
        self.assertEqual(len(segments[0].text), 400)

    def test_slicing_ignores_word_boundaries(self) -> None:
        segments = segment_text("Alice met Bob", max_input_length=100, chunk_size=4)

        self.assertEqual([s.text for s in segments], ["Alic", "e me", "t Bo", "b"])

    def test_exact_multiple_has_no_empty_tail(self) -> None:
        segments = segment_text("abcdef", max_input_length=100, chunk_size=3)

        self.assertEqual([s.text for s in segments], ["abc", "def"])

    def test_empty_text_yields_no_segments(self) -> None:
        self.assertEqual(segment_text("", max_input_length=10, chunk_size=5), [])

    def test_invalid_bounds_are_rejected(self) -> None:
        with self.assertRaises(ValueError):
            segment_text("abc", max_input_length=0, chunk_size=5)
        with self.assertRaises(ValueError):
            segment_text("abc", max_input_length=10, chunk_size=0)

    def test_truncate_is_a_hard_cutoff(self) -> None:
        self.assertEqual(truncate_text("Alice spoke to Bob.", 11), "Alice spoke")


if __name__ == "__main__":
    unittest.main()
