"""timeclock package.

Attendance day state machine (clock in/out, breaks, overnight shifts) and the
face-gated clocking protocol, organised by feature modules (attendance,
faces, clocking) with thin Flask controllers over service/repository layers.
"""
