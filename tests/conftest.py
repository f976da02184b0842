"""Shared pytest fixtures for resource-driver tests."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from client.memory import InMemoryClient
from document import Document
from resource_opr.context import Context

FUNCTION_API = 'serverless.kyma-project.io/v1alpha1'
TRIGGER_API = 'eventing.knative.dev/v1'


def make_function(name='fn', **spec):
    """Function document with an optional spec."""
    return Document({
        'apiVersion': FUNCTION_API,
        'kind': 'Function',
        'metadata': {'name': name},
        'spec': spec or {'runtime': 'python39', 'source': 'def main(event, context): pass'},
    })


def make_trigger(name, labels=None, **spec):
    """Trigger document with optional labels and spec."""
    metadata = {'name': name}
    if labels:
        metadata['labels'] = dict(labels)
    return Document({
        'apiVersion': TRIGGER_API,
        'kind': 'Trigger',
        'metadata': metadata,
        'spec': spec or {'broker': 'default', 'filter': {'attributes': {'type': 'order.created'}}},
    })


@pytest.fixture
def ctx():
    """A fresh, never-cancelled context."""
    return Context.background()


@pytest.fixture
def function_client():
    """In-memory store for Function documents."""
    return InMemoryClient(FUNCTION_API, 'Function')


@pytest.fixture
def trigger_client():
    """In-memory store for Trigger documents."""
    return InMemoryClient(TRIGGER_API, 'Trigger')
