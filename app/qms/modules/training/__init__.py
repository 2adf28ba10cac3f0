"""
Performance-based training.

Trainees prove competence by running the real document lifecycle on a
sandboxed training document. Each step is checked against database state;
completing the last step issues a certificate and grants qualification roles.
"""
