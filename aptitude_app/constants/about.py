"""Static metadata describing Aptitest."""

APP_NAME = "Aptitest"
APP_VERSION = "0.1"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "Aptitest is an online aptitude-testing service. Administrators author "
    "multiple-choice questions tagged by topic and schedule timed tests; "
    "students take topic-balanced tests against the clock."
)

HELP_TEXT = (
    "Questions can be added one by one or imported in bulk. CSV imports use the header\n\n"
    "Question,Option1,Option2,Option3,Option4,CorrectOptionIndex,Explanation,Topic\n\n"
    "where CorrectOptionIndex is zero-based. Text imports use blocks such as:\n\n"
    "Q: What is the chemical symbol for gold?\n"
    "A: Go\nB: Gd\nC: Au\nD: Ag\n"
    "CORRECT: C\nTOPIC: Science\n"
    "EXPLANATION: From the Latin word aurum."
)
