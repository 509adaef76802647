"""
Eligibility predicates

A job's filter decides per record whether it still needs the transformation.
Predicates are pure and only look at record fields; a record whose previous
attempt failed stays eligible because failure markers never satisfy them.
"""
from typing import Any, Callable, Iterable

from nutribatch.engine.records import TargetRecord

EligibilityFilter = Callable[[TargetRecord], bool]


def _present(value: Any) -> bool:
    return value not in (None, "", [], {})


def missing_any(*fields: str) -> EligibilityFilter:
    """Eligible while at least one of the fields is absent or empty."""
    def predicate(record: TargetRecord) -> bool:
        return any(not _present(record.get(name)) for name in fields)
    return predicate


def has_any(*fields: str) -> EligibilityFilter:
    """Eligible when at least one of the fields carries a value."""
    def predicate(record: TargetRecord) -> bool:
        return any(_present(record.get(name)) for name in fields)
    return predicate


def field_not_equal(name: str, value: Any) -> EligibilityFilter:
    """Eligible while record[name] differs from value (absent counts as different)."""
    def predicate(record: TargetRecord) -> bool:
        return record.get(name) != value
    return predicate


def nested_present(name: str, sub_key: str) -> EligibilityFilter:
    """record[name][sub_key] carries a value, e.g. title_localized.en."""
    def predicate(record: TargetRecord) -> bool:
        container = record.get(name)
        return isinstance(container, dict) and _present(container.get(sub_key))
    return predicate


def any_of(*predicates: EligibilityFilter) -> EligibilityFilter:
    def predicate(record: TargetRecord) -> bool:
        return any(p(record) for p in predicates)
    return predicate


def all_of(*predicates: EligibilityFilter) -> EligibilityFilter:
    def predicate(record: TargetRecord) -> bool:
        return all(p(record) for p in predicates)
    return predicate


def select_eligible(records: Iterable[TargetRecord], is_eligible: EligibilityFilter) -> list:
    return [record for record in records if is_eligible(record)]
