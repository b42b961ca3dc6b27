from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from costbook.money import ZERO, as_json_number
from costbook.time_utils import to_utc_z
from .accounts import STATUS_ACTIVE


class JournalPage(db.Model):
    """
    One balanced multi-line transaction.

    Pages are immutable once written. The only permitted change is the
    ACTIVE -> DISABLED void transition; posts are never rewritten.
    """
    __tablename__ = "journal_pages"
    __table_args__ = (
        db.Index("ix_journal_pages_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    currency_id = db.Column(db.Integer, db.ForeignKey("currencies.id"), nullable=False)
    ref = db.Column(db.String(128), nullable=True, index=True)
    source = db.Column(db.String(64), nullable=True, index=True)
    description = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=STATUS_ACTIVE)
    disabled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    disabled_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    currency = db.relationship("Currency")
    user = db.relationship("User", foreign_keys=[user_id])
    posts = db.relationship(
        "JournalPost",
        backref="page",
        lazy=True,
        order_by="JournalPost.id",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def total_debits(self) -> Decimal:
        return sum((p.debit or ZERO for p in self.posts), ZERO)

    @property
    def total_credits(self) -> Decimal:
        return sum((p.credit or ZERO for p in self.posts), ZERO)

    @property
    def is_balanced(self) -> bool:
        # recomputed from persisted posts on every read
        return bool(self.posts) and self.total_debits == self.total_credits

    def __repr__(self) -> str:
        return f"<JournalPage id={self.id} ref={self.ref!r} status={self.status}>"

    def to_dict(self, include_posts: bool = True) -> dict:
        data = {
            "id": self.id,
            "currency_id": self.currency_id,
            "currency_code": self.currency.code if self.currency else None,
            "ref": self.ref,
            "source": self.source,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
            "user_id": self.user_id,
            "status": self.status,
            "disabled_at": to_utc_z(self.disabled_at) if self.disabled_at else None,
            "disabled_by_user_id": self.disabled_by_user_id,
            "version_id": self.version_id,
            "total_debits": as_json_number(self.total_debits),
            "total_credits": as_json_number(self.total_credits),
            "is_balanced": self.is_balanced,
        }
        if include_posts:
            data["posts"] = [p.to_dict() for p in self.posts]
        return data


class JournalPost(db.Model):
    __tablename__ = "journal_posts"
    __table_args__ = (
        db.CheckConstraint("debit >= 0", name="ck_journal_posts_debit_nonneg"),
        db.CheckConstraint("credit >= 0", name="ck_journal_posts_credit_nonneg"),
        db.Index("ix_journal_posts_account_page", "account_number", "page_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    page_id = db.Column(db.Integer, db.ForeignKey("journal_pages.id"), nullable=False, index=True)

    # Foreign key by natural key
    account_number = db.Column(db.String(32), db.ForeignKey("accounts.number"), nullable=False)

    ref = db.Column(db.String(128), nullable=True)
    description = db.Column(db.String(500), nullable=True)
    debit = db.Column(db.Numeric(18, 4), nullable=False, default=0)
    credit = db.Column(db.Numeric(18, 4), nullable=False, default=0)

    account = db.relationship("Account", foreign_keys=[account_number])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "page_id": self.page_id,
            "account_number": self.account_number,
            "account_name": self.account.name if self.account else None,
            "ref": self.ref,
            "description": self.description,
            "debit": as_json_number(self.debit),
            "credit": as_json_number(self.credit),
        }
