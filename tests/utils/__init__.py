"""Test utilities and helpers for plan_qa tests."""

from tests.utils.factories import PlanRecordFactory, PolicySetFactory
from tests.utils.helpers import (
    FakeEmbeddingProvider,
    make_factory,
    make_failing_factory,
    passages,
)

__all__ = [
    "PlanRecordFactory",
    "PolicySetFactory",
    "FakeEmbeddingProvider",
    "make_factory",
    "make_failing_factory",
    "passages",
]
