"""Public SDK surface for the dashbuilder backend.

This module provides a stable import path for embedders.
It re-exports the client, the document model, and the core services.
"""

from __future__ import annotations

from core.config import DashbuilderConfig, load_config_file
from core.types import CommitOption, CSVDataSetDef, DataSetDef, DeploymentReport
from deploy.deployment_watcher import DeploymentWatcher
from store.definition_codec import DataSetDefJSONCodec
from store.definition_registry import DataSetDefRegistry, DefinitionRegistry
from store.definition_sdk import DashbuilderClient
from store.definition_store import DefinitionStore
from store.versioned_store import GitDocumentStore, LocalDocumentStore

__all__ = [
    "CSVDataSetDef",
    "CommitOption",
    "DashbuilderClient",
    "DashbuilderConfig",
    "DataSetDef",
    "DataSetDefJSONCodec",
    "DataSetDefRegistry",
    "DefinitionRegistry",
    "DefinitionStore",
    "DeploymentReport",
    "DeploymentWatcher",
    "GitDocumentStore",
    "LocalDocumentStore",
    "load_config_file",
]
