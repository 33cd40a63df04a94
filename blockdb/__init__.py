from blockdb.config import Config
from blockdb.db import BlockDB
from blockdb.errors import (
    BlockDBError,
    CorruptEncoding,
    DuplicateSpend,
    ExtractionError,
    MalformedFile,
    NotFound,
    NotMarked,
    PredecessorNotFound,
    UnrecognizedScriptType,
    Unspent,
)
from blockdb.tx import FeeStatus, Satoshis, TxView
