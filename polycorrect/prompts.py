"""Correction styles and the prompts sent to every provider."""
from __future__ import annotations

from enum import Enum
from typing import Dict, List, Any

# Separates the instruction from the user's text inside the user message.
TEXT_DELIMITER = "---"


class CorrectionStyle(Enum):
    """What the providers should do with the clipboard text."""

    NORMAL = "normal"
    PROFESSIONAL = "professional"
    TRANSLATE_EN = "translate_en"
    TRANSLATE_PL = "translate_pl"
    CHANGE_MEANING = "change_meaning"
    SUMMARY = "summary"
    PROMPT = "prompt"

    @classmethod
    def from_str(cls, value: Any) -> "CorrectionStyle":
        """Parse a style key, falling back to NORMAL for anything unknown."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            for style in cls:
                if style.value == key:
                    return style
        return cls.NORMAL

    @property
    def label(self) -> str:
        return STYLE_PRESETS[self]["label"]

    @property
    def icon(self) -> str:
        return STYLE_PRESETS[self]["icon"]

    @property
    def instruction(self) -> str:
        return STYLE_PRESETS[self]["instruction"]


SYSTEM_PROMPT = """You are a virtual editor. Your primary specialization is proofreading technical texts for the IT industry, transforming them into correct, clear, and professional-sounding Polish. The input text will typically be in Polish, unless a specific translation task is requested. Follow these instructions meticulously:
1. **Error Correction (for Polish text)**: Detect and correct ALL spelling, grammatical, punctuation, and stylistic errors. Focus on precision and compliance with Polish language standards.
2. **Clarity and Conciseness**: Simplify complex sentences while preserving their technical meaning. Aim for clear and precise communication. Eliminate redundant words and repetitions.
3. **IT Terminology**: Preserve original technical terms, proper names, acronyms, and code snippets, unless they contain obvious spelling mistakes. Do not change their meaning.
4. **Professional Tone**: Give the text a professional yet natural tone. Avoid colloquialisms, but also excessive formality.
5. **Formatting**: Strictly preserve the original text formatting: paragraphs, bulleted/numbered lists, indentations, bolding (if Markdown was used), and line breaks. This is crucial for all tasks, including translation.
6. **Output Content**: As the result, return ONLY the final processed text. DO NOT include any additional comments, headers, explanations, or separators like "---" or "```".
7. **Strict Formatting Rules**:
   - Never start or end the response with any separator characters like ---, ===, ```, or any other decorative elements
   - Do not add any closing remarks like "Let me know if you need anything else"
   - Do not include any text that wasn't in the original input unless it's a necessary correction
   - If the input is empty, return an empty string

If the task is a translation, the output should be only the translated text. If the task is correction, the output should be only the corrected Polish text."""

PROFESSIONAL_SYSTEM_PROMPT = """You are a senior Polish-language editor specializing in transforming texts into a consistent, formal, business-appropriate register. Apply the following rules rigorously:
1. Tone: neutral, courteous, and professional; no colloquialisms or emojis.
2. Register: prefer impersonal constructions or formal address (Państwo), avoid second-person singular unless the genre requires it.
3. Clarity: shorter sentences where appropriate; remove filler words; keep the meaning intact.
4. Precision: prefer precise vocabulary; correct punctuation and typography.
5. Formatting: strictly preserve paragraphs, lists, and line breaks.
6. Output: return ONLY the final, professionally restyled Polish text, no comments or markers."""

PROMPT_SYSTEM_PROMPT = """You are an AI assistant that transforms user requests into direct, executable commands. Follow these rules:
1. **Be direct**: Convert requests into simple, imperative statements.
2. **No explanations**: Do not include any additional context or notes.
3. **Preserve intent**: Maintain the original meaning while making it actionable.
4. **Single action**: Focus on one clear action per instruction.
5. **Be specific**: Include all necessary details for immediate execution.

IMPORTANT: Return the response in the following format:
1. First line: The instruction in English
2. Empty line
3. Second line: The same instruction translated to Polish (Tłumaczenie: [tłumaczenie])

Example:
Remove the Cancel button
Tłumaczenie: Usuń przycisk Anuluj

Add a new feature
Tłumaczenie: Dodaj nową funkcję"""


STYLE_PRESETS: Dict[CorrectionStyle, Dict[str, str]] = {
    CorrectionStyle.NORMAL: {
        "label": "Standard correction",
        "icon": "✏️",
        "instruction": (
            "Correct the following text, preserving its formatting (including all enters and paragraphs). "
            "Return ONLY the corrected text, without any additional headers, separators, or comments."
        ),
        "system": SYSTEM_PROMPT,
    },
    CorrectionStyle.PROFESSIONAL: {
        "label": "Professional tone",
        "icon": "✨",
        "instruction": (
            "Rewrite the following text into a professional, formal register. "
            "Preserve the original meaning and formatting (paragraphs, lists, line breaks). "
            "Always adjust tone to business/professional Polish: "
            "- remove colloquialisms, emojis, exclamation-heavy rhetoric "
            "- prefer neutral/impersonal or formal address (Państwo / trzecia osoba) "
            "- replace casual verbs and particles with precise, formal equivalents "
            "- standardize punctuation and capitalization "
            "- ensure clear, concise, and courteous phrasing "
            "IMPORTANT: Do not return the input unchanged; refine it to a consistently formal style."
        ),
        "system": PROFESSIONAL_SYSTEM_PROMPT,
    },
    CorrectionStyle.TRANSLATE_EN: {
        "label": "Translate to English",
        "icon": "🇺🇸",
        "instruction": (
            "YOUR SOLE TASK IS TO TRANSLATE THE FOLLOWING TEXT INTO ENGLISH. "
            "Preserve the original formatting (paragraphs, lists, etc.). "
            "Do not correct the text, only translate it."
        ),
        "system": SYSTEM_PROMPT,
    },
    CorrectionStyle.TRANSLATE_PL: {
        "label": "Translate to Polish",
        "icon": "🇵🇱",
        "instruction": (
            "YOUR SOLE TASK IS TO TRANSLATE THE FOLLOWING TEXT INTO POLISH. "
            "Preserve the original formatting (paragraphs, lists, etc.). "
            "Do not correct the text, only translate it."
        ),
        "system": SYSTEM_PROMPT,
    },
    CorrectionStyle.CHANGE_MEANING: {
        "label": "Change meaning",
        "icon": "🔄",
        "instruction": "Propose a completely new text based on the one below, preserving the formatting.",
        "system": SYSTEM_PROMPT,
    },
    CorrectionStyle.SUMMARY: {
        "label": "Summary",
        "icon": "📝",
        "instruction": (
            "Create a concise summary of the main points from the following text, "
            "preserving the formatting of lists, etc."
        ),
        "system": SYSTEM_PROMPT,
    },
    CorrectionStyle.PROMPT: {
        "label": "Turn into instruction",
        "icon": "💡",
        "instruction": (
            "Transform the following text into a clear, concise instruction for immediate implementation. "
            "The output should be a direct, actionable command or request without explanations, examples, "
            "or additional context. If the text is a request or command, convert it into a straightforward "
            "instruction as if speaking to an assistant who will execute it immediately. Do not add any "
            "introductory phrases, just provide the instruction itself. If the text is already a clear "
            "instruction, return it as is. Focus on maintaining the original intent while making it as "
            "direct and actionable as possible."
        ),
        "system": PROMPT_SYSTEM_PROMPT,
    },
}


def get_instruction_prompt(style: Any) -> str:
    return STYLE_PRESETS[CorrectionStyle.from_str(style)]["instruction"]


def get_system_prompt(style: Any) -> str:
    return STYLE_PRESETS[CorrectionStyle.from_str(style)]["system"]


def build_user_message(instruction_prompt: str, text: str) -> str:
    """Embed the text below the instruction, fenced by the delimiter lines."""
    return f"{instruction_prompt}\n\n{TEXT_DELIMITER}\n{text}\n{TEXT_DELIMITER}"


def get_style_options() -> List[Dict[str, str]]:
    """Expose style presets for the UI selector."""
    return [
        {
            "key": style.value,
            "label": preset["label"],
            "icon": preset["icon"],
        }
        for style, preset in STYLE_PRESETS.items()
    ]
