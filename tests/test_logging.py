import logging

import pytest

from logging_config import ContactMaskingFilter, mask_contact_details


@pytest.fixture
def masked_logger():
    logger = logging.getLogger("test.contacts")
    logger.setLevel(logging.INFO)
    logger.filters = []
    logger.addFilter(ContactMaskingFilter())
    yield logger
    logger.filters = []


def test_email_keeps_initial_and_domain():
    assert mask_contact_details("from mcfly@hillvalley.edu") == "from m***@hillvalley.edu"


def test_phone_keeps_last_two_digits():
    assert mask_contact_details("call +1 (555) 010-4477 now") == "call ***77 now"


def test_short_numbers_untouched():
    assert mask_contact_details("attempt 2/3 after 2s") == "attempt 2/3 after 2s"


def test_filter_masks_message_text(masked_logger, caplog):
    with caplog.at_level(logging.INFO, logger="test.contacts"):
        masked_logger.info("Resolving mcfly@hillvalley.edu with phone +1 (555) 010-4477")

    assert "mcfly@hillvalley.edu" not in caplog.text
    assert "010-4477" not in caplog.text
    assert "m***@hillvalley.edu" in caplog.text
    assert "***77" in caplog.text


def test_filter_masks_string_args_but_keeps_ids(masked_logger, caplog):
    with caplog.at_level(logging.INFO, logger="test.contacts"):
        masked_logger.info("Contact %d has email %s", 1234567, "doc@hillvalley.edu")

    assert "Contact 1234567 has email d***@hillvalley.edu" in caplog.text


def test_filter_masks_mapping_args(masked_logger, caplog):
    with caplog.at_level(logging.INFO, logger="test.contacts"):
        masked_logger.info("phone %(phone)s", {"phone": "5550104477"})

    assert "5550104477" not in caplog.text
    assert "phone ***77" in caplog.text
