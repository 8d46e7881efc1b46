"""Booking domain - Appointment creation, lifecycle and listings"""
