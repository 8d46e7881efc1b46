"""Identity domain - Accounts, role profiles and role resolution"""
