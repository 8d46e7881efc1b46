"""Audit domain - Append-only log of privileged mutations"""
