"""Clinical domain - Prescriptions and patient-reported symptoms"""
