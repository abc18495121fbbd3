import pytest

import csb_samples


@pytest.fixture
def sample_data():
    return csb_samples.sample_csb()


@pytest.fixture
def minimal_data():
    return csb_samples.minimal_csb()
