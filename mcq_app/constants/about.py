"""Static metadata describing the MCQ practice app."""

APP_NAME = "MCQ Practice"
APP_VERSION = "0.1"
APP_ABOUT_TEXT = (
    "MCQ Practice serves multiple-choice quizzes organised by course and week. "
    "Questions you miss come back in later attempts until you have them down."
)
