import pytest

from costbook.errors import ValidationError
from costbook.extensions import db
from costbook.models import DocumentSequence
from costbook.services.document_service import (
    EXCHANGE_DOCUMENT,
    PURCHASE_DOCUMENT,
    SALE_DOCUMENT,
    next_document_number,
)


def test_sequence_starts_at_one_and_increments(db_session):
    first = next_document_number(document_type=SALE_DOCUMENT[0], prefix=SALE_DOCUMENT[1])
    second = next_document_number(document_type=SALE_DOCUMENT[0], prefix=SALE_DOCUMENT[1])
    db.session.commit()

    assert (first, second) == ("SAL-00001", "SAL-00002")
    seq = db.session.query(DocumentSequence).filter_by(document_type="SALE").one()
    assert seq.next_number == 3


def test_sequences_are_independent_per_type(db_session):
    assert next_document_number(document_type=PURCHASE_DOCUMENT[0], prefix=PURCHASE_DOCUMENT[1]) == "PUR-00001"
    assert next_document_number(document_type=EXCHANGE_DOCUMENT[0], prefix=EXCHANGE_DOCUMENT[1]) == "FX-00001"
    assert next_document_number(document_type=PURCHASE_DOCUMENT[0], prefix=PURCHASE_DOCUMENT[1]) == "PUR-00002"
    db.session.commit()


def test_number_is_only_consumed_on_commit(db_session):
    next_document_number(document_type="SALE", prefix="SAL")
    db.session.rollback()

    assert next_document_number(document_type="SALE", prefix="SAL") == "SAL-00001"
    db.session.commit()


def test_custom_padding(db_session):
    assert next_document_number(document_type="MEMO", prefix="M", pad=3) == "M-001"
    db.session.rollback()


@pytest.mark.parametrize("document_type,prefix", [("", "SAL"), ("SALE", "")])
def test_type_and_prefix_are_required(db_session, document_type, prefix):
    with pytest.raises(ValidationError):
        next_document_number(document_type=document_type, prefix=prefix)
