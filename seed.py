import argparse
from datetime import datetime, timezone, timedelta

from firebase_admin import auth as firebase_auth

from academy import create_app
from academy.firebase_init import get_auth
from academy import firestore_dao as dao

PASSWORD = 'password123'

INSTRUCTORS = [
    ('sarah.johnson@example.com', 'Dr. Sarah Johnson', 'PhD in Computer Science with 8+ years teaching experience'),
    ('michael.chen@example.com', 'Prof. Michael Chen', 'Senior Software Engineer with 12+ years industry experience'),
    ('emily.rodriguez@example.com', 'Dr. Emily Rodriguez', 'PhD in Machine Learning, Former Google AI researcher'),
    ('lisa.park@example.com', 'Lisa Park', 'Senior Data Analyst at Fortune 500 company'),
]

# (instructor index, course fields, lesson titles)
COURSES = [
    (0, {
        'title': 'Introduction to Python',
        'description': 'Start your programming journey with Python basics, syntax, and fundamental concepts.',
        'short_description': 'No programming experience required',
        'category': 'Programming',
        'level': 'beginner',
        'price': 2999,
        'original_price': 4999,
        'duration': '6 weeks',
        'tags': ['python', 'programming', 'beginner'],
        'available': True,
    }, ['Python Basics', 'Data Types', 'Control Structures', 'Functions', 'File Handling', 'Error Handling']),
    (1, {
        'title': 'Advanced Python Course',
        'description': 'Deep dive into advanced Python concepts, OOP, and professional development practices.',
        'short_description': 'Basic Python knowledge required',
        'category': 'Programming',
        'level': 'advanced',
        'price': 4999,
        'duration': '8 weeks',
        'tags': ['python', 'oop', 'async'],
        'available': False,
    }, ['OOP', 'Decorators', 'Generators', 'Async Programming', 'Testing', 'Deployment']),
    (2, {
        'title': 'Foundations in Machine Learning',
        'description': 'Learn ML algorithms, model building, and practical implementation techniques.',
        'short_description': 'Python and basic statistics knowledge',
        'category': 'Machine Learning',
        'level': 'intermediate',
        'price': 7999,
        'duration': '10 weeks',
        'tags': ['machine learning', 'ai', 'python'],
        'available': False,
    }, ['ML Basics', 'Supervised Learning', 'Unsupervised Learning', 'Model Evaluation',
        'Feature Engineering', 'Model Deployment']),
    (3, {
        'title': 'SQL CrashCourse',
        'description': 'Master database querying, joins, and data manipulation with SQL.',
        'short_description': 'No prior database experience required',
        'category': 'Database',
        'level': 'beginner',
        'price': 1999,
        'duration': '4 weeks',
        'tags': ['sql', 'database'],
        'available': False,
    }, ['SQL Basics', 'Joins', 'Aggregations', 'Subqueries', 'Stored Procedures', 'Performance Optimization']),
    (3, {
        'title': 'Python for Data Analysis',
        'description': 'Use Python libraries like Pandas, NumPy, and Matplotlib for data analysis.',
        'short_description': 'Basic Python knowledge required',
        'category': 'Data Science',
        'level': 'intermediate',
        'price': 5999,
        'duration': '8 weeks',
        'tags': ['pandas', 'numpy', 'data science'],
        'available': False,
    }, ['Pandas', 'NumPy', 'Matplotlib', 'Seaborn', 'Data Cleaning', 'Statistical Analysis']),
    (0, {
        'title': 'Git and GitHub Essentials',
        'description': 'Version control for everyday projects: commits, branches, pull requests and collaboration.',
        'short_description': 'A free primer for every course',
        'category': 'Programming',
        'level': 'beginner',
        'price': 0,
        'duration': '1 week',
        'tags': ['git', 'github', 'free'],
        'available': True,
    }, ['Why version control', 'Commits and history', 'Branching', 'Pull requests']),
]


def create_firebase_user(auth, email, display_name, role, extra=None):
    try:
        fb_user = auth.create_user(email=email, password=PASSWORD, display_name=display_name)
    except firebase_auth.EmailAlreadyExistsError:
        fb_user = auth.get_user_by_email(email)
    uid = fb_user.uid
    if dao.get_user(uid):
        return uid
    user_data = {
        'email': email,
        'display_name': display_name,
        'role': role,
        'provider': 'email',
    }
    if extra:
        user_data.update(extra)
    dao.create_user_profile(uid, user_data)
    return uid


def promote_admin(email):
    user = dao.get_user_by_email(email)
    if not user:
        print(f"No profile found for {email}. Register first, then re-run with --admin-email.")
        return False
    if user.get('role') == 'super_admin':
        print(f"{email} is already a super admin.")
        return True
    updates = dao.update_user_role(user['id'], 'super_admin', 'seed')
    print(f"{email} promoted to super admin ({updates.get('unique_id', user.get('unique_id'))}).")
    return True


def seed_database():
    app = create_app()
    with app.app_context():
        auth = get_auth()

        print("Creating instructors...")
        instructor_uids = []
        for email, name, bio in INSTRUCTORS:
            instructor_uids.append(create_firebase_user(auth, email, name, 'instructor', {'bio': bio}))

        print("Creating students...")
        student_uids = []
        for i in range(1, 6):
            student_uids.append(create_firebase_user(
                auth, f'student{i}@example.com', f'Student {i}', 'student',
                {'experience': 'beginner', 'learning_goals': 'Get job-ready in data'},
            ))

        print("Creating courses...")
        course_ids = []
        for idx, fields, lessons in COURSES:
            name = INSTRUCTORS[idx][1]
            course_id = dao.create_course(dict(
                fields,
                instructor_id=instructor_uids[idx],
                instructor_name=name,
                is_published=False,
            ))
            for n, title in enumerate(lessons, start=1):
                dao.add_lesson(course_id, {
                    'title': title,
                    'description': f'{title} in {fields["title"]}.',
                    'duration_minutes': 45,
                    'is_preview': n == 1,
                })
            dao.set_course_published(course_id, True)
            course_ids.append(course_id)

        print("Enrolling students...")
        python_intro, git_primer = course_ids[0], course_ids[-1]
        for uid in student_uids[:3]:
            dao.enroll_in_course(uid, git_primer)
        dao.enroll_in_course(student_uids[0], python_intro, payment={
            'payment_id': 'pay_seed_0001',
            'order_id': 'order_seed_0001',
            'amount': 3539,
            'currency': 'INR',
            'payment_method': 'razorpay',
        })

        print("Scheduling live classes...")
        start = (datetime.now(timezone.utc) + timedelta(days=2)).replace(hour=14, minute=0, second=0, microsecond=0)
        for week in range(3):
            dao.create_scheduled_class({
                'course_id': python_intro,
                'instructor_id': instructor_uids[0],
                'title': f'Week {week + 1} live Q&A',
                'start_time': start + timedelta(weeks=week),
                'duration': 60,
                'platform': 'meet',
                'meeting_url': 'https://meet.google.com/abc-defg-hij',
            })

        print("\n" + "=" * 60)
        print("    Test accounts (password: password123)")
        print("=" * 60)
        print("\n[Instructors]")
        for email, name, _ in INSTRUCTORS:
            print(f"  {name}: {email}")
        print("\n[Students]")
        print("  student1~5@example.com")
        print("\n" + "=" * 60)
        print("Seed complete!")


def main():
    parser = argparse.ArgumentParser(description='Seed Data Rhythm Academy sample data.')
    parser.add_argument('--admin-email', help='promote this registered user to super admin and exit')
    args = parser.parse_args()

    if args.admin_email:
        app = create_app()
        with app.app_context():
            promote_admin(args.admin_email)
        return
    seed_database()


if __name__ == '__main__':
    main()
