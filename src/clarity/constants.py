"""
Shared constants for Clarity.
"""

DEFAULT_MAX_TOKENS = 120000
DEFAULT_OVERLAP_TOKENS = 2000
DEFAULT_PRIORITY_ORDER = (
    "project_summary",
    "custom_prompt",
    "template_prompt",
    "question_answers",
    "stakeholder_profiles",
    "file_content",
    "questions_list",
    "metadata",
)
UNLISTED_PRIORITY = 999
CRITICAL_PRIORITY_CUTOFF = 3
PROMPT_SAFETY_MARGIN_TOKENS = 1000
CHAIN_SAFETY_MARGIN_TOKENS = 2000
CHARS_PER_TOKEN = 4

CSV_MAX_ROWS = 50
CONTENT_PREVIEW_CHARS = 500

CONFIG_DIR_NAME = ".clarity"
CONFIG_FILE_NAME = "config.yml"

NO_PROJECT_INFO = "No project information available."
NO_STAKEHOLDER_INFO = "No stakeholder information available."
NO_STAKEHOLDERS = "No stakeholders assigned."
NO_INTERVIEW_RESPONSES = "No interview responses available."
NO_RESPONSES = "No responses available."
NO_STAKEHOLDER_RESPONSES = "No stakeholder responses available."
NO_FILES_UPLOADED = "No files uploaded."
NO_SUPPLEMENTAL_FILES = "No supplemental files available."
NO_FILES = "No files available."
NO_QUESTIONS = "No questions available."
NO_SESSIONS = "No interview sessions available."
NO_DOCUMENT_RUNS = "No document runs available."
NO_EXPORTS = "No exports available."
