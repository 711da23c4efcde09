"""
Hypothesis strategies for people and person references.

Names never contain the characters used by the ``Name <email>`` and
``a; b`` cell formats, and are already whitespace-trimmed.
"""

from hypothesis import strategies as st
from hypothesis.strategies import composite


# Non-empty string strategy
non_empty_string_strategy = st.text(
    min_size=1,
    max_size=100,
    alphabet=st.characters(whitelist_categories=('L', 'N', 'Z'))
).filter(lambda s: len(s.strip()) > 0)

person_name_strategy = st.text(
    min_size=1,
    max_size=40,
    alphabet=st.characters(whitelist_categories=('L', 'N'))
)

email_local_part_strategy = st.text(
    min_size=1,
    max_size=20,
    alphabet='abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789.',
).filter(lambda s: not s.startswith('.') and not s.endswith('.'))

email_domain_strategy = st.sampled_from(['example.com', 'corp.example.org', 'audit.test'])


@composite
def email_strategy(draw):
    """Generate a plain email address."""
    return f"{draw(email_local_part_strategy)}@{draw(email_domain_strategy)}"


@composite
def person_strategy(draw, with_email: bool = None):
    """
    Generate a (name, email) pair.

    Args:
        with_email: Force an email to be present (True) or absent (False).
    """
    name = draw(person_name_strategy)
    if with_email is None:
        with_email = draw(st.booleans())
    email = draw(email_strategy()) if with_email else None
    return name, email


@composite
def person_reference_strategy(draw):
    """Generate a free-text person reference as found in CSV cells."""
    name, email = draw(person_strategy())
    if email is None:
        return name
    style = draw(st.sampled_from(['full', 'bare_email', 'padded']))
    if style == 'full':
        return f"{name} <{email}>"
    if style == 'bare_email':
        return email
    return f"  {name}   <{email}>  "
