from datetime import datetime, timezone, timedelta
from pesantren import create_app
from pesantren.firebase_init import get_auth
from pesantren import firestore_dao as dao
from pesantren.firestore_models import Chat, Classroom, Schedule


def _iso(dt):
    return dt.isoformat()


def seed_database():
    app = create_app()
    with app.app_context():
        auth = get_auth()
        now = datetime.now(timezone.utc)

        password = 'password123'

        print("Creating users...")

        def create_firebase_user(email, name, role, extra=None):
            try:
                fb_user = auth.create_user(email=email, password=password, display_name=name)
            except auth.EmailAlreadyExistsError:
                fb_user = auth.get_user_by_email(email)
            uid = fb_user.uid
            user_data = {
                'email': email,
                'name': name,
                'role': role,
                'phone': '',
                'createdAt': _iso(now),
            }
            if extra:
                user_data.update(extra)
            dao.create_user(uid, user_data)
            return uid

        admin_uid = create_firebase_user('admin@pesantren.id', 'Admin Pesantren', 'admin')
        ustad1_uid = create_firebase_user('ustad1@pesantren.id', 'Ustad Ahmad', 'ustad',
                                          {'specialization': 'Tahfidz, Tajwid'})
        ustad2_uid = create_firebase_user('ustad2@pesantren.id', 'Ustad Yusuf', 'ustad',
                                          {'specialization': 'Fiqih'})

        santri_uids = []
        for i in range(1, 7):
            uid = create_firebase_user(f'santri{i}@pesantren.id', f'Santri {i}', 'santri', {
                'entryYear': '2024' if i <= 3 else '2025',
                'status': 'active',
            })
            santri_uids.append(uid)

        # Parents link their children in the map form plus studentIds
        parent_uids = []
        for i in range(1, 4):
            children = santri_uids[(i - 1) * 2:i * 2]
            uid = create_firebase_user(f'orangtua{i}@pesantren.id', f'Orang Tua {i}', 'orangtua', {
                'studentIds': children,
                'santri': {
                    dao.new_santri_id(): {
                        'name': f'Anak {i}',
                        'nis': f'2024{i:03d}',
                        'gender': 'L' if i % 2 else 'P',
                        'tempatLahir': 'Bandung',
                        'tanggalLahir': f'201{i}-0{i}-1{i}',
                        'tahunDaftar': '2024',
                        'createdAt': _iso(now),
                    },
                },
            })
            parent_uids.append(uid)
            for child in children:
                dao.update_user(child, {'parentId': uid})

        print("Creating classes...")
        class_specs = [
            ('Kelas 1 - Tahfidz', ustad1_uid, 'Ustad Ahmad',
             Schedule(['senin', 'rabu'], '07:00', '08:30'), santri_uids[:3]),
            ('Kelas 2 - Fiqih', ustad2_uid, 'Ustad Yusuf',
             Schedule(['selasa', 'kamis'], '09:00', '10:30'), santri_uids[3:]),
        ]
        for name, ustad_id, ustad_name, schedule, students in class_specs:
            dao.create_class({
                'name': name,
                'academicYear': '2025/2026',
                'ustadId': ustad_id,
                'ustadName': ustad_name,
                'schedule': schedule.to_dict(),
                'studentIds': Classroom.enrollment_map(students, _iso(now)),
                'createdAt': _iso(now),
                'createdBy': admin_uid,
                'createdByName': 'Admin Pesantren',
                'status': 'active',
            })

        print("Creating chats...")
        chat_id = dao.create_chat(Chat(
            participant1_id=ustad1_uid,
            participant1_name='Ustad Ahmad',
            participant2_id=parent_uids[0],
            participant2_name='Orang Tua 1',
            created_at=_iso(now - timedelta(days=1)),
        ).to_dict())
        conversation = [
            (ustad1_uid, 'Ustad Ahmad', 'Assalamualaikum, hafalan Santri 1 sudah sampai juz 2.', 'read'),
            (parent_uids[0], 'Orang Tua 1', 'Waalaikumsalam, alhamdulillah. Terima kasih ustad.', 'delivered'),
            (ustad1_uid, 'Ustad Ahmad', 'Mohon dibantu murajaah di rumah.', 'sent'),
        ]
        for offset, (sender, sender_name, text, status) in enumerate(conversation):
            sent_at = _iso(now - timedelta(hours=3 - offset))
            stamps = {'sent': sent_at}
            if status in ('delivered', 'read'):
                stamps['delivered'] = sent_at
            if status == 'read':
                stamps['read'] = sent_at
            dao.create_message(chat_id, {
                'text': text,
                'senderId': sender,
                'senderName': sender_name,
                'createdAt': sent_at,
                'status': status,
                'statusTimestamp': stamps,
            })
            dao.update_chat(chat_id, {'lastMessage': text, 'lastMessageTime': sent_at})

        print("Creating reports...")
        dao.create_report('quranReports', {
            'studentId': santri_uids[0],
            'studentName': 'Santri 1',
            'surah': 'Al-Baqarah',
            'ayatStart': 1,
            'ayatEnd': 20,
            'fluencyLevel': 'good',
            'testDate': now.strftime('%Y-%m-%d'),
            'ustadId': ustad1_uid,
            'ustadName': 'Ustad Ahmad',
            'createdAt': _iso(now),
            'updatedAt': _iso(now),
        })
        dao.create_report('academicReports', {
            'studentId': santri_uids[3],
            'studentName': 'Santri 4',
            'subject': 'Fiqih',
            'gradeType': 'number',
            'gradeNumber': 87,
            'semester': '1',
            'academicYear': '2025/2026',
            'ustadId': ustad2_uid,
            'ustadName': 'Ustad Yusuf',
            'createdAt': _iso(now),
            'updatedAt': _iso(now),
        })
        dao.create_report('behaviorReports', {
            'studentId': santri_uids[1],
            'studentName': 'Santri 2',
            'category': 'discipline',
            'priority': 'medium',
            'title': 'Terlambat shalat subuh',
            'description': 'Terlambat mengikuti shalat subuh berjamaah dua kali.',
            'incidentDate': now.strftime('%Y-%m-%d'),
            'status': 'open',
            'followUpRequired': True,
            'ustadId': ustad1_uid,
            'ustadName': 'Ustad Ahmad',
            'createdAt': _iso(now),
            'updatedAt': _iso(now),
        })

        print("\n" + "=" * 60)
        print("    Akun demo")
        print("=" * 60)
        print("\n[Admin]")
        print("  Email: admin@pesantren.id")
        print("\n[Ustad]")
        print("  ustad1@pesantren.id, ustad2@pesantren.id")
        print("\n[Orang tua]")
        print("  orangtua1~3@pesantren.id")
        print("\n  Password: password123 (semua akun)")
        print("\n" + "=" * 60)
        print("Seed selesai!")


if __name__ == '__main__':
    seed_database()
