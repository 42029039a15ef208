"""
JSON codec of the engine entities, for external config stores and exports.

The document is an object with a ``type`` field and the entity fields, see :mod:`inertia_vault.types.documents`
"""
from typing import Dict, Type, Union

from pydantic import Field, TypeAdapter
from typing_extensions import Annotated

from inertia_vault.types.documents import JobDocument, SnapshotDocument, RunRecordDocument, LogEntryDocument
from inertia_vault.types.job_info import JobInfo
from inertia_vault.types.log_entry_info import LogEntryInfo
from inertia_vault.types.run_record_info import RunRecordInfo
from inertia_vault.types.snapshot_info import SnapshotInfo

Entity = Union[JobInfo, SnapshotInfo, RunRecordInfo, LogEntryInfo]
EntityDocument = Union[JobDocument, SnapshotDocument, RunRecordDocument, LogEntryDocument]

_DOCUMENT_TYPES: Dict[Type, Type[EntityDocument]] = {
	JobInfo: JobDocument,
	SnapshotInfo: SnapshotDocument,
	RunRecordInfo: RunRecordDocument,
	LogEntryInfo: LogEntryDocument,
}
_document_adapter: TypeAdapter = TypeAdapter(Annotated[EntityDocument, Field(discriminator='type')])


def to_document(entity: Entity) -> EntityDocument:
	doc_class = _DOCUMENT_TYPES.get(type(entity))
	if doc_class is None:
		raise TypeError('unsupported entity type {}'.format(type(entity)))
	return doc_class.from_info(entity)


def serialize(entity: Entity) -> bytes:
	return to_document(entity).model_dump_json().encode('utf8')


def deserialize(data: bytes) -> Entity:
	"""
	:raise ValueError: if the data is not a valid entity document. ``pydantic.ValidationError`` is a ValueError
	"""
	return _document_adapter.validate_json(data).to_info()
