"""Shared fixtures: small snapshot documents of a shop database."""

import copy
import json
from pathlib import Path
from typing import Any

import pytest

from db_script_export.adapters.snapshot import SnapshotBackend

FK_ADD = (
    "ALTER TABLE [dbo].[Orders]  WITH CHECK ADD  CONSTRAINT [FK_Orders_Customers] "
    "FOREIGN KEY([CustomerId])\nREFERENCES [dbo].[Customers] ([Id])"
)
FK_NOCHECK = "ALTER TABLE [dbo].[Orders] NOCHECK CONSTRAINT [FK_Orders_Customers]"

SHOP_DOCUMENT: dict[str, Any] = {
    "version": 1,
    "server": "srv",
    "database": "Shop",
    "database_object": {
        "statements": ["CREATE DATABASE [Shop]"],
        "children": [
            {
                "type": "DdlTrigger",
                "name": "AuditDdl",
                "statements": ["CREATE TRIGGER [AuditDdl] ON DATABASE FOR CREATE_TABLE AS PRINT 1"],
            }
        ],
    },
    "objects": [
        {"type": "Schema", "name": "Sales", "statements": ["CREATE SCHEMA [Sales]"]},
        {"type": "User", "name": "app", "statements": ["CREATE USER [app] WITHOUT LOGIN"]},
        {"type": "Role", "name": "Readers", "statements": ["CREATE ROLE [Readers]"]},
        {
            "type": "StoredProcedure",
            "schema": "dbo",
            "name": "GetOrders",
            "statements": ["CREATE PROCEDURE [dbo].[GetOrders] AS SELECT 1"],
            "depends_on": [
                {"type": "View", "schema": "dbo", "name": "OrderSummary"},
                {"type": "Table", "schema": "dbo", "name": "OldOrders", "database": "Archive"},
            ],
        },
        {
            "type": "Table",
            "schema": "dbo",
            "name": "Orders",
            "statements": [
                "CREATE TABLE [dbo].[Orders](\n\t[Id] [int] NOT NULL,\n"
                "\t[CustomerId] [int] NULL\n)",
                {"text": FK_ADD, "requires": "foreign_keys"},
                {"text": FK_NOCHECK, "requires": "foreign_keys"},
            ],
            "children": [
                {
                    "type": "ForeignKey",
                    "name": "FK_Orders_Customers",
                    "statements": [FK_ADD, FK_NOCHECK],
                }
            ],
            "depends_on": [{"type": "Table", "schema": "dbo", "name": "Customers"}],
        },
        {
            "type": "Table",
            "schema": "dbo",
            "name": "Customers",
            "statements": ["CREATE TABLE [dbo].[Customers](\n\t[Id] [int] NOT NULL\n)"],
            "children": [
                {
                    "type": "Index",
                    "name": "PK_Customers",
                    "key_type": "PrimaryKey",
                    "extended_properties": {"MS_Description": "Customer key"},
                }
            ],
        },
        {
            "type": "View",
            "schema": "dbo",
            "name": "OrderSummary",
            "statements": ["CREATE VIEW [dbo].[OrderSummary] AS SELECT Id FROM [dbo].[Orders]"],
            "depends_on": [{"type": "Table", "schema": "dbo", "name": "Orders"}],
        },
    ],
}

CYCLE_DOCUMENT: dict[str, Any] = {
    "server": "srv",
    "database": "Loop",
    "objects": [
        {
            "type": "Table",
            "schema": "dbo",
            "name": "A",
            "statements": [
                "CREATE TABLE [dbo].[A]([Id] [int] NOT NULL, [BId] [int] NULL)",
                {"text": "ALTER TABLE [dbo].[A]  WITH CHECK ADD  CONSTRAINT [FK_A_B] "
                         "FOREIGN KEY([BId]) REFERENCES [dbo].[B] ([Id])",
                 "requires": "foreign_keys"},
            ],
            "children": [
                {
                    "type": "ForeignKey",
                    "name": "FK_A_B",
                    "statements": [
                        "ALTER TABLE [dbo].[A]  WITH CHECK ADD  CONSTRAINT [FK_A_B] "
                        "FOREIGN KEY([BId]) REFERENCES [dbo].[B] ([Id])"
                    ],
                }
            ],
            "depends_on": [{"type": "Table", "schema": "dbo", "name": "B"}],
        },
        {
            "type": "Table",
            "schema": "dbo",
            "name": "B",
            "statements": [
                "CREATE TABLE [dbo].[B]([Id] [int] NOT NULL, [AId] [int] NULL)",
                {"text": "ALTER TABLE [dbo].[B]  WITH CHECK ADD  CONSTRAINT [FK_B_A] "
                         "FOREIGN KEY([AId]) REFERENCES [dbo].[A] ([Id])",
                 "requires": "foreign_keys"},
            ],
            "children": [
                {
                    "type": "ForeignKey",
                    "name": "FK_B_A",
                    "statements": [
                        "ALTER TABLE [dbo].[B]  WITH CHECK ADD  CONSTRAINT [FK_B_A] "
                        "FOREIGN KEY([AId]) REFERENCES [dbo].[A] ([Id])"
                    ],
                }
            ],
            "depends_on": [{"type": "Table", "schema": "dbo", "name": "A"}],
        },
    ],
}


@pytest.fixture
def shop_document() -> dict[str, Any]:
    """A fresh copy of the shop snapshot document."""
    return copy.deepcopy(SHOP_DOCUMENT)


@pytest.fixture
def shop_backend(shop_document: dict[str, Any]) -> SnapshotBackend:
    """SnapshotBackend over the shop document."""
    return SnapshotBackend.from_dict(shop_document)


@pytest.fixture
def cycle_document() -> dict[str, Any]:
    """A fresh copy of a document with two tables referencing each other."""
    return copy.deepcopy(CYCLE_DOCUMENT)


@pytest.fixture
def cycle_backend(cycle_document: dict[str, Any]) -> SnapshotBackend:
    """SnapshotBackend over the cycle document."""
    return SnapshotBackend.from_dict(cycle_document)


@pytest.fixture
def shop_snapshot_file(tmp_path: Path, shop_document: dict[str, Any]) -> Path:
    """The shop document saved as a JSON file."""
    path = tmp_path / "shop.json"
    path.write_text(json.dumps(shop_document), encoding="utf-8")
    return path
