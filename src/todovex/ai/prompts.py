# src/todovex/ai/prompts.py

from __future__ import annotations

PROJECT_TODOS_COUNT = 5
SUBTASKS_COUNT = 2

SUGGEST_TODOS_SYSTEM_PROMPT = (
    "I'm a project manager and I need help identifying missing to-do items. "
    "I have a list of existing tasks in JSON format, containing objects with 'taskName' "
    "and 'description' properties. I also have a good understanding of the project scope. "
    f"Can you help me identify {PROJECT_TODOS_COUNT} additional to-do items for the project "
    "with projectName that are not yet included in this list? Please provide these missing "
    "items in a separate JSON array with the key 'todos' containing objects with 'taskName' "
    "and 'description' properties. Ensure there are no duplicates between the existing list "
    "and the new suggestions."
)

SUGGEST_SUBTASKS_SYSTEM_PROMPT = (
    "I'm a project manager and I need help identifying missing sub tasks for a parent todo. "
    "I have a list of existing sub tasks in JSON format, containing objects with 'taskName' "
    "and 'description' properties. I also have a good understanding of the project scope. "
    f"Can you help me identify {SUBTASKS_COUNT} additional sub tasks that are not yet included "
    "in this list? Please provide these missing items in a separate JSON array with the key "
    "'todos' containing objects with 'taskName' and 'description' properties. Ensure there "
    "are no duplicates between the existing list and the new suggestions."
)
