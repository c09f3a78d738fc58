from __future__ import annotations

from agile_planner.validators.schema import EntitySchema, PropertySpec

USER_STORY_SCHEMA = EntitySchema(
    name="userStory",
    required=("id", "title"),
    properties={
        "id": PropertySpec("string"),
        "title": PropertySpec("string"),
        "description": PropertySpec("string", description="As a <role>, I want <action> so that <benefit>"),
        "acceptance_criteria": PropertySpec("array", description="Given/When/Then statements"),
        "tasks": PropertySpec("array"),
        "priority": PropertySpec("string", description="HIGH, MEDIUM or LOW"),
        "businessValue": PropertySpec("string"),
    },
)

FEATURE_SCHEMA = EntitySchema(
    name="feature",
    required=("id", "title"),
    properties={
        "id": PropertySpec("string"),
        "title": PropertySpec("string"),
        "description": PropertySpec("string"),
        "acceptance_criteria": PropertySpec("array"),
        "stories": PropertySpec("array", items=USER_STORY_SCHEMA),
        "priority": PropertySpec("string"),
        "businessValue": PropertySpec("string"),
    },
)

EPIC_SCHEMA = EntitySchema(
    name="epic",
    required=("id", "title"),
    properties={
        "id": PropertySpec("string"),
        "title": PropertySpec("string"),
        "description": PropertySpec("string"),
        "features": PropertySpec("array", items=FEATURE_SCHEMA),
    },
)

# Iterations and the MVP only reference stories defined under the epics.
STORY_REF_SCHEMA = EntitySchema(
    name="storyRef",
    required=("id", "title"),
    properties={
        "id": PropertySpec("string"),
        "title": PropertySpec("string"),
    },
)

ITERATION_SCHEMA = EntitySchema(
    name="iteration",
    required=("name", "stories"),
    properties={
        "name": PropertySpec("string"),
        "description": PropertySpec("string"),
        "startDate": PropertySpec("string"),
        "endDate": PropertySpec("string"),
        "stories": PropertySpec("array", items=STORY_REF_SCHEMA),
    },
)

BACKLOG_SCHEMA = EntitySchema(
    name="backlog",
    required=("projectName", "epics"),
    properties={
        "projectName": PropertySpec("string"),
        "description": PropertySpec("string"),
        "projectDescription": PropertySpec("string"),
        "epics": PropertySpec("array", items=EPIC_SCHEMA),
        "mvp": PropertySpec("array", items=STORY_REF_SCHEMA),
        "iterations": PropertySpec("array", items=ITERATION_SCHEMA),
        "orphan_stories": PropertySpec("array", items=USER_STORY_SCHEMA),
    },
)

ENTITY_SCHEMAS = {
    "userStory": USER_STORY_SCHEMA,
    "feature": FEATURE_SCHEMA,
    "epic": EPIC_SCHEMA,
    "iteration": ITERATION_SCHEMA,
    "backlog": BACKLOG_SCHEMA,
}
