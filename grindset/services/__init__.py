"""Engine services: grind lifecycle, tasks, participation, invitations and messages."""
