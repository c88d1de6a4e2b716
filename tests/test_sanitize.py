import unittest

from lxml import html as LXML_HTML

from folio.sanitize import (
    filter_style,
    has_visual_content,
    is_script_url,
    sanitize_text_html,
    scrub_visual_tree,
    strip_script_declarations,
    strip_scripts,
)


def _doc(body: str):
    return LXML_HTML.document_fromstring(f"<html><head></head><body>{body}</body></html>")


class TextSanitizerTests(unittest.TestCase):
    def test_scripts_handlers_and_script_urls_are_removed(self) -> None:
        out = sanitize_text_html(
            "<p onclick=\"steal()\">Hello <a href=\"javascript:alert(1)\">there</a></p>"
            "<script>alert(1)</script><iframe src=\"https://evil.example\"></iframe>"
        )
        self.assertNotIn("<script", out)
        self.assertNotIn("javascript:", out)
        self.assertNotIn("onclick", out)
        self.assertNotIn("<iframe", out)
        self.assertIn("<p>Hello <a>there</a></p>", out)

    def test_allowed_markup_survives(self) -> None:
        html_text = (
            "<h2 id=\"c1\" class=\"title\">One</h2>"
            "<p>Some <em>emphasis</em> and <strong>weight</strong>.</p>"
            "<table><tbody><tr><td colspan=\"2\">cell</td></tr></tbody></table>"
            "<a href=\"https://example.com/\">link</a> <a href=\"mailto:a@example.com\">mail</a>"
        )
        out = sanitize_text_html(html_text)
        self.assertIn("<h2 id=\"c1\" class=\"title\">One</h2>", out)
        self.assertIn("<em>emphasis</em>", out)
        self.assertIn("<td colspan=\"2\">cell</td>", out)
        self.assertIn("href=\"https://example.com/\"", out)
        self.assertIn("href=\"mailto:a@example.com\"", out)

    def test_unknown_tags_are_stripped_but_text_kept(self) -> None:
        out = sanitize_text_html("<p><font color=\"red\">kept text</font></p>")
        self.assertNotIn("<font", out)
        self.assertIn("kept text", out)

    def test_disallowed_style_properties_are_dropped(self) -> None:
        out = sanitize_text_html("<p style=\"color: red; behavior: url(x.htc)\">x</p>")
        self.assertIn("color", out)
        self.assertNotIn("behavior", out)


class StyleFilterTests(unittest.TestCase):
    def test_filter_style_keeps_allowed_properties(self) -> None:
        self.assertEqual(
            filter_style("color: #333; text-align:center; margin: 0 auto 1em"),
            "color: #333; text-align: center; margin: 0 auto 1em",
        )

    def test_filter_style_drops_unknown_and_unsafe(self) -> None:
        self.assertEqual(filter_style("behavior: url(x.htc); width: expression(alert(1))"), "")
        self.assertEqual(filter_style("font-family: 'Noto Serif', serif; -webkit-foo: bar"), "font-family: 'Noto Serif', serif")
        self.assertEqual(filter_style("list-style-image: url(a.png)"), "")


class VisualSignalTests(unittest.TestCase):
    def test_image_is_visual(self) -> None:
        self.assertTrue(has_visual_content(_doc("<p><img src=\"a.png\"/></p>")))

    def test_svg_is_visual(self) -> None:
        self.assertTrue(has_visual_content(_doc("<svg><rect width=\"1\" height=\"1\"></rect></svg>")))

    def test_background_image_is_visual(self) -> None:
        self.assertTrue(has_visual_content(_doc("<div style=\"background-image: url(bg.png)\">x</div>")))
        self.assertTrue(has_visual_content(_doc("<div style=\"background: #fff url(bg.png) no-repeat\">x</div>")))

    def test_plain_text_is_not_visual(self) -> None:
        self.assertFalse(has_visual_content(_doc("<p style=\"background-color: #eee\">Only words.</p>")))


class VisualScrubTests(unittest.TestCase):
    def test_script_url_declarations_are_dropped(self) -> None:
        css = "p { color: red; background: url('javascript:alert(1)'); margin: 0 }\nq { list-style: url(VBScript:x) }"
        self.assertEqual(strip_script_declarations(css), "p { color: red; margin: 0 }\nq {}")

    def test_scrub_cleans_style_attributes_and_blocks(self) -> None:
        root = _doc(
            "<style>.a { background-image: url(javascript:alert(1)) }</style>"
            "<div style=\"background-image: url('javascript:alert(2)')\">x</div>"
            "<p style=\"color: red; background: url(javascript:alert(3))\">y</p>"
        )
        scrub_visual_tree(root)
        out = LXML_HTML.tostring(root, encoding="unicode")
        self.assertNotIn("javascript:", out)
        self.assertIsNone(root.body.find("div").get("style"))
        self.assertEqual(root.body.find("p").get("style"), "color: red;")

    def test_scrub_removes_script_vectors(self) -> None:
        root = _doc(
            "<img src=\"a.png\" onerror=\"alert(1)\"/>"
            "<a href=\" JaVa\tScRiPt:alert(1)\" onclick=\"x()\">x</a>"
            "<svg onload=\"y()\"><a href=\"https://example.com\">ok</a></svg>"
            "<script>alert(2)</script>tail"
        )
        scrub_visual_tree(root)
        out = LXML_HTML.tostring(root, encoding="unicode")
        self.assertNotIn("<script", out)
        self.assertNotIn("onerror", out)
        self.assertNotIn("onclick", out)
        self.assertNotIn("onload", out)
        self.assertNotIn("alert", out)
        self.assertIn("src=\"a.png\"", out)
        self.assertIn("https://example.com", out)
        self.assertIn("tail", out)

    def test_strip_scripts_keeps_tail_text(self) -> None:
        root = _doc("<p>before<script>x()</script>after</p>")
        strip_scripts(root)
        self.assertEqual(root.body[0].text_content(), "beforeafter")

    def test_is_script_url(self) -> None:
        self.assertTrue(is_script_url("javascript:alert(1)"))
        self.assertTrue(is_script_url("  java\nscript:alert(1)"))
        self.assertTrue(is_script_url("VBScript:msgbox"))
        self.assertFalse(is_script_url("https://example.com/javascript:"))
        self.assertFalse(is_script_url("data:image/png;base64,AAAA"))


if __name__ == "__main__":
    unittest.main()
