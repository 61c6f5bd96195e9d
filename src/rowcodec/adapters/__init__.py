"""
Adapters between statements, rows and dataclass aggregates.
"""
from rowcodec.adapters.column_info import BindSlot as BindSlot
from rowcodec.adapters.column_info import Column as Column
from rowcodec.adapters.decoder import RowDecoder as RowDecoder
from rowcodec.adapters.encoder import StatementEncoder as StatementEncoder
from rowcodec.adapters.fields import FieldKind as FieldKind
from rowcodec.adapters.fields import FieldSpec as FieldSpec
from rowcodec.adapters.fields import describe as describe
