class Guest:
    """Stand-in for ``g.user`` when nobody is signed in."""

    def __init__(self):
        self.id = None
        self.full_name = "Guest"
        self.email = None
        self.role = "GUEST"
        self.status = None

    @property
    def is_authenticated(self):
        return False

    @property
    def is_admin(self):
        return False

    @property
    def is_approved(self):
        return False

    def to_dict(self):
        return {
            'id': None,
            'fullName': 'Guest',
            'role': 'GUEST'
        }

    def __bool__(self):
        return False
