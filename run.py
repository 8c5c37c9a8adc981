#!/usr/bin/env python3
"""
CLI entry point for the Rental Reservation Reconciler.
"""
import sys
import os

# Allow running from a checkout without installing
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from src.main import main

if __name__ == "__main__":
    main()
