"""Static application data shared by routes and the auth layer."""

DEMO_STUDENTS = [
    {
        'id': 'student_alice',
        'email': 'alice@demo.studesq.com',
        'name': 'Alice Chen',
        'role': 'STUDENT',
    },
    {
        'id': 'student_marcus',
        'email': 'marcus@demo.studesq.com',
        'name': 'Marcus Johnson',
        'role': 'STUDENT',
    },
    {
        'id': 'student_priya',
        'email': 'priya@demo.studesq.com',
        'name': 'Priya Sharma',
        'role': 'STUDENT',
    },
]

DEMO_PARENTS = [
    {
        'id': 'parent_alice',
        'email': 'alice-parent@demo.studesq.com',
        'name': 'Helen Chen',
        'role': 'PARENT',
    },
    {
        'id': 'parent_marcus',
        'email': 'marcus-parent@demo.studesq.com',
        'name': 'David Johnson',
        'role': 'PARENT',
    },
]

DEMO_ADMIN = {
    'id': 'admin_user',
    'email': 'admin@demo.studesq.com',
    'name': 'Admin User',
    'role': 'ADMIN',
}

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
BIO_MAX_LENGTH = 500
SCHOOL_MAX_LENGTH = 200
GRADE_MAX_LENGTH = 50
ACHIEVEMENT_TITLE_MAX_LENGTH = 200
ACHIEVEMENT_DESCRIPTION_MAX_LENGTH = 1000

ALLOWED_MIME_TYPES = ('application/pdf', 'image/jpeg', 'image/jpg', 'image/png')
CONTENT_TYPES_BY_EXTENSION = {
    '.pdf': 'application/pdf',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
}


def find_demo_account(email: str) -> dict | None:
    normalized = email.strip().lower()
    for account in [*DEMO_STUDENTS, *DEMO_PARENTS, DEMO_ADMIN]:
        if account['email'] == normalized:
            return account
    return None


def all_demo_accounts() -> dict:
    return {
        'students': DEMO_STUDENTS,
        'parents': DEMO_PARENTS,
        'admin': DEMO_ADMIN,
    }
