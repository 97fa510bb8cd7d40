"""BDD tests for parsing and history features."""

import pytest
from pytest_bdd import scenarios

# Load all exploration feature scenarios
scenarios(".")

pytestmark = [pytest.mark.tier(1), pytest.mark.core]
