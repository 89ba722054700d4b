#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Inventory Management System - Main Entry Point
"""
import logging

import cli
from db import Database
from services import InventoryService
from settings import load_settings


def main():
    settings = load_settings()
    logging.basicConfig(
        level=getattr(logging, str(settings["log_level"]).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    db = Database(settings["db_path"])
    db.init_db()
    service = InventoryService(db, settings)
    cli.run(service)


if __name__ == "__main__":
    main()
