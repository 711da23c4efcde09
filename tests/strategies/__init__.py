"""
Hypothesis strategies for property-based testing.

Contains test data generators for the tracker's Pydantic models.
"""

# Identity strategies
from tests.strategies.identity_strategies import (
    non_empty_string_strategy,
    person_name_strategy,
    email_strategy,
    person_strategy,
    person_reference_strategy,
)

# Observation strategies
from tests.strategies.observation_strategies import (
    quarter_strategy,
    testing_status_strategy,
    score_strategy,
    iso_date_strategy,
    cell_text_strategy,
    item_id_strategy,
    artifact_key_strategy,
    quarter_record_strategy,
    observation_strategy,
)

# Control and requirement strategies
from tests.strategies.control_strategies import (
    control_id_strategy,
    requirement_id_strategy,
    control_strategy,
    control_list_strategy,
    requirement_strategy,
)

__all__ = [
    'non_empty_string_strategy',
    'person_name_strategy',
    'email_strategy',
    'person_strategy',
    'person_reference_strategy',
    'quarter_strategy',
    'testing_status_strategy',
    'score_strategy',
    'iso_date_strategy',
    'cell_text_strategy',
    'item_id_strategy',
    'artifact_key_strategy',
    'quarter_record_strategy',
    'observation_strategy',
    'control_id_strategy',
    'requirement_id_strategy',
    'control_strategy',
    'control_list_strategy',
    'requirement_strategy',
]
