"""Unit tests for correction styles and prompt assembly."""
from __future__ import annotations

import unittest

from polycorrect.prompts import (
    CorrectionStyle,
    PROFESSIONAL_SYSTEM_PROMPT,
    PROMPT_SYSTEM_PROMPT,
    SYSTEM_PROMPT,
    build_user_message,
    get_instruction_prompt,
    get_style_options,
    get_system_prompt,
)


class TestCorrectionStyle(unittest.TestCase):
    """Parsing and metadata of correction styles."""

    def test_from_str_known_values(self):
        """Style keys parse case-insensitively."""
        self.assertIs(CorrectionStyle.from_str("professional"), CorrectionStyle.PROFESSIONAL)
        self.assertIs(CorrectionStyle.from_str(" Translate_EN "), CorrectionStyle.TRANSLATE_EN)

    def test_from_str_falls_back_to_normal(self):
        """Unknown or missing styles fall back to normal correction."""
        self.assertIs(CorrectionStyle.from_str("shakespeare"), CorrectionStyle.NORMAL)
        self.assertIs(CorrectionStyle.from_str(None), CorrectionStyle.NORMAL)

    def test_from_str_accepts_enum(self):
        self.assertIs(CorrectionStyle.from_str(CorrectionStyle.SUMMARY), CorrectionStyle.SUMMARY)

    def test_every_style_has_prompts(self):
        """All styles carry a label, an instruction and a system prompt."""
        for style in CorrectionStyle:
            self.assertTrue(style.label)
            self.assertTrue(style.instruction)
            self.assertTrue(get_system_prompt(style))

    def test_system_prompt_selection(self):
        """Professional and prompt styles use dedicated system prompts."""
        self.assertEqual(get_system_prompt("professional"), PROFESSIONAL_SYSTEM_PROMPT)
        self.assertEqual(get_system_prompt("prompt"), PROMPT_SYSTEM_PROMPT)
        self.assertEqual(get_system_prompt("normal"), SYSTEM_PROMPT)
        self.assertEqual(get_system_prompt("summary"), SYSTEM_PROMPT)

    def test_instruction_lookup_by_key(self):
        self.assertIn("ENGLISH", get_instruction_prompt("translate_en"))
        self.assertIn("POLISH", get_instruction_prompt("translate_pl"))

    def test_style_options_for_ui(self):
        """The UI selector lists every style in declaration order."""
        options = get_style_options()
        self.assertEqual([option["key"] for option in options], [style.value for style in CorrectionStyle])
        self.assertTrue(all(option["label"] and option["icon"] for option in options))


class TestUserMessage(unittest.TestCase):

    def test_delimited_layout(self):
        """The text is fenced by delimiter lines below the instruction."""
        message = build_user_message("Fix this", "ala ma kota")
        self.assertEqual(message, "Fix this\n\n---\nala ma kota\n---")

    def test_multiline_text_preserved(self):
        message = build_user_message("Fix", "line one\n\nline two")
        self.assertTrue(message.endswith("---\nline one\n\nline two\n---"))


if __name__ == "__main__":
    unittest.main()
