#!/usr/bin/env python3
"""Backup runner"""
from backubrr.cli import main

if __name__ == '__main__':
    main()
