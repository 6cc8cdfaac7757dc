"""Course session scheduling and attendance package.

Organized by feature modules (schedules, attendance, authz, ...) with a thin
Flask controller layer over service/repository layers.
"""
