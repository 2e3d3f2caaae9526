"""Column helpers shared by the FRA Patta models"""
import uuid

from sqlalchemy import Column, ForeignKey, String

# Ids are UUID4 strings in dashed form, stored as VARCHAR on SQLite and PostgreSQL alike
ID_LENGTH = 36


def new_id() -> str:
    return str(uuid.uuid4())


def id_column() -> Column:
    """Primary key for every table"""
    return Column(String(ID_LENGTH), primary_key=True, default=new_id)


def user_reference(cascade: bool = False, index: bool = False) -> Column:
    """
    Foreign key to users.id.

    cascade=True removes the row together with its user (an NGO's
    assignments). Otherwise the reference is cleared and the row survives
    the account, which is what uploads and ministry authorship need.
    """
    if cascade:
        return Column(
            String(ID_LENGTH), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=index
        )
    return Column(String(ID_LENGTH), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=index)
