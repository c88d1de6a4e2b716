import unittest

from epub_builder import build_epub, xhtml

from folio.archive import Archive
from folio.chapters import is_front_matter, reading_order, segment_chapters, should_drop
from folio.errors import NoReadableChapters
from folio.extract import ExtractedChapter
from folio.package import load_package


def _chapter(title: str, text_length: int, *, visual: bool = False, index: int = 0) -> ExtractedChapter:
    return ExtractedChapter(
        spine_index=index,
        member_path=f"OEBPS/c{index}.xhtml",
        title=title,
        content=f"<p>{title}</p>",
        text_length=text_length,
        visual=visual,
    )


class ReadingOrderTests(unittest.TestCase):
    def test_skips_non_linear_unknown_and_non_html(self) -> None:
        manifest = [
            ("c1", "one.xhtml", "application/xhtml+xml"),
            ("notes", "notes.xhtml", "application/xhtml+xml"),
            ("pic", "pic.png", "image/png"),
            ("c2", "two.html", "text/html"),
        ]
        spine = ["c1", ("notes", "no"), "ghost", "pic", "c2"]
        data = build_epub({"one.xhtml": xhtml("<p>1</p>")}, manifest=manifest, spine=spine)
        package = load_package(Archive.from_bytes(data))

        order = reading_order(package)

        self.assertEqual([(index, item.item_id) for index, item in order], [(0, "c1"), (4, "c2")])

    def test_linear_attribute_is_case_insensitive(self) -> None:
        data = build_epub(
            {"a.xhtml": xhtml("<p>a</p>"), "b.xhtml": xhtml("<p>b</p>")},
            spine=[("c1", "NO"), ("c2", "yes")],
        )
        package = load_package(Archive.from_bytes(data))
        self.assertEqual([item.item_id for _, item in reading_order(package)], ["c2"])


class FrontMatterTests(unittest.TestCase):
    def test_keywords(self) -> None:
        for title in ("Table of Contents", "COVER", "Title Page", "Copyright Notice", "Introduction"):
            self.assertTrue(is_front_matter(title), title)
        for title in ("Chapter 1", "The Storm", ""):
            self.assertFalse(is_front_matter(title), title)

    def test_short_text_front_matter_is_dropped(self) -> None:
        self.assertTrue(should_drop(_chapter("Contents", 40)))
        self.assertFalse(should_drop(_chapter("Contents", 120)))
        self.assertFalse(should_drop(_chapter("Contents", 40, visual=True)))
        self.assertFalse(should_drop(_chapter("Chapter 1", 3)))

    def test_threshold_is_configurable(self) -> None:
        self.assertFalse(should_drop(_chapter("Copyright", 40), min_chars=10))


class SegmentTests(unittest.TestCase):
    def test_positions_are_contiguous(self) -> None:
        chapters = segment_chapters(
            [
                _chapter("Cover", 0, visual=True, index=0),
                None,
                _chapter("Contents", 12, index=2),
                _chapter("One", 500, index=3),
                _chapter("Two", 800, index=4),
            ]
        )
        self.assertEqual([chapter.title for chapter in chapters], ["Cover", "One", "Two"])
        self.assertEqual([chapter.position for chapter in chapters], [0, 1, 2])

    def test_nothing_left_raises(self) -> None:
        with self.assertRaises(NoReadableChapters) as ctx:
            segment_chapters([None, _chapter("Table of Contents", 20)])
        self.assertEqual(ctx.exception.kind, "no-readable-chapters")
        self.assertEqual(str(ctx.exception), "No readable chapters found.")


if __name__ == "__main__":
    unittest.main()
