import uuid

import pytest

from .factories import NOW


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def student_id():
    return uuid.uuid4()
