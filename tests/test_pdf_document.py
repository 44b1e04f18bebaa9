import unittest

from policy_service.services.layout import LayoutOptions
from policy_service.services.pdf_document import PolicyDocument, TextRun, sanitize_pdf_text


class TestSanitizePdfText(unittest.TestCase):
    def test_maps_common_unicode_to_latin1(self) -> None:
        self.assertEqual(sanitize_pdf_text("• item — “quoted”…"), "· item -- \"quoted\"...")

    def test_keeps_latin1_symbols(self) -> None:
        self.assertEqual(sanitize_pdf_text("§164.308(a)(3)"), "§164.308(a)(3)")

    def test_replaces_unsupported_characters(self) -> None:
        self.assertEqual(sanitize_pdf_text("漢"), "?")


class TestPolicyDocument(unittest.TestCase):
    def setUp(self) -> None:
        self.document = PolicyDocument(LayoutOptions(), title="Access Control Policy - Acme", author="Acme")

    def test_starts_on_first_page(self) -> None:
        self.assertEqual(self.document.page, 1)
        self.assertEqual(self.document.page_count, 1)
        self.assertEqual(self.document.operations, [])

    def test_draw_text_records_logical_text(self) -> None:
        run = self.document.draw_text("• Least privilege", 25, 40, 10)
        self.assertEqual(run, TextRun(page=1, x=25, y=40, text="• Least privilege", font_size=10))
        self.assertEqual(self.document.text_runs(), [run])

    def test_draw_text_on_later_page(self) -> None:
        self.document.add_page()
        run = self.document.draw_text("Review Cycle", 20, 20, 12, bold=True)
        self.assertEqual(run.page, 2)
        self.assertTrue(run.bold)

    def test_string_width_grows_with_font_size(self) -> None:
        small = self.document.string_width("Incident Response", 10)
        large = self.document.string_width("Incident Response", 14)
        self.assertGreater(large, small)
        self.assertGreater(self.document.string_width("Incident", 10, bold=True), self.document.string_width("Incident", 10))

    def test_split_lines_keeps_original_characters(self) -> None:
        text = "• Report incidents — including “near misses” — to the security team. " * 4
        lines = self.document.split_lines(text, 80, 10)
        self.assertGreater(len(lines), 1)
        self.assertTrue(lines[0].startswith("• Report"))
        self.assertEqual(" ".join(lines).split(), text.split())

    def test_split_lines_respects_width_and_newlines(self) -> None:
        lines = self.document.split_lines("Purpose\nScope of the policy", 170, 10)
        self.assertEqual(lines, ["Purpose", "Scope of the policy"])
        for line in self.document.split_lines("Least privilege " * 20, 60, 10):
            self.assertLessEqual(self.document.string_width(line.rstrip(), 10), 60)

    def test_output_is_pdf(self) -> None:
        self.document.draw_text("Purpose & Scope", 20, 20, 12, bold=True)
        content = self.document.output()
        self.assertIsInstance(content, bytes)
        self.assertTrue(content.startswith(b"%PDF"))


if __name__ == "__main__":
    unittest.main()
