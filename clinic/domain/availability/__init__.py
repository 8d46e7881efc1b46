"""Availability domain - Doctors' recurring weekly booking windows"""
