import json
import shutil
import tempfile
from io import BytesIO

from django.conf import settings
from django.contrib.auth.models import User
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, Client, override_settings
from PIL import Image

from .models import CustomerProfile


def _png_bytes():
    buf = BytesIO()
    Image.new('RGB', (4, 4), color=(200, 16, 46)).save(buf, format='PNG')
    return buf.getvalue()


class CustomerProfileModelTests(TestCase):
    def test_profile_created_with_user(self):
        user = User.objects.create_user('fan', email='fan@example.com', password='secret1')
        self.assertTrue(CustomerProfile.objects.filter(user=user).exists())
        self.assertEqual(user.profile.as_dict()['name'], None)


class ProfileViewTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user('fan', email='fan@example.com', password='secret1')
        self.client = Client()
        self.client.force_login(self.user)

    def _patch(self, payload):
        return self.client.patch('/api/account/profile', data=json.dumps(payload), content_type='application/json')

    def test_anonymous_gets_401(self):
        resp = Client().patch('/api/account/profile', data='{}', content_type='application/json')
        self.assertEqual(resp.status_code, 401)

    def test_update_name_and_image(self):
        resp = self._patch({'name': '  Rui Costa  ', 'image': '/media/uploads/a.png'})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()['user']['name'], 'Rui Costa')
        self.user.profile.refresh_from_db()
        self.assertEqual(self.user.profile.image, '/media/uploads/a.png')

    def test_partial_update_keeps_other_fields(self):
        self._patch({'name': 'Rui', 'image': 'https://cdn.test/me.png'})
        self._patch({'name': 'Rui Costa'})
        self.user.profile.refresh_from_db()
        self.assertEqual(self.user.profile.image, 'https://cdn.test/me.png')

    def test_null_clears_image(self):
        self._patch({'image': 'https://cdn.test/me.png'})
        self._patch({'image': None})
        self.user.profile.refresh_from_db()
        self.assertEqual(self.user.profile.image, '')

    def test_data_url_rejected(self):
        resp = self._patch({'image': 'data:image/png;base64,AAAA'})
        self.assertEqual(resp.status_code, 400)

    def test_protocol_relative_rejected(self):
        resp = self._patch({'image': '//evil.test/x.png'})
        self.assertEqual(resp.status_code, 400)

    def test_name_too_long(self):
        resp = self._patch({'name': 'x' * 121})
        self.assertEqual(resp.status_code, 400)


class PasswordViewTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user('fan', password='secret1')
        self.client = Client()
        self.client.force_login(self.user)

    def _patch(self, payload):
        return self.client.patch('/api/account/password', data=json.dumps(payload), content_type='application/json')

    def test_change_password(self):
        resp = self._patch({'currentPassword': 'secret1', 'newPassword': 'golo2025'})
        self.assertEqual(resp.status_code, 200)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('golo2025'))

    def test_short_password(self):
        resp = self._patch({'currentPassword': 'secret1', 'newPassword': 'abc'})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()['error'], 'New password must be at least 6 characters.')

    def test_wrong_current_password(self):
        resp = self._patch({'currentPassword': 'nope', 'newPassword': 'golo2025'})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()['error'], 'Current password is incorrect')
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('secret1'))


class UploadViewTests(TestCase):
    def setUp(self):
        self.media_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.media_root, ignore_errors=True)
        self.user = User.objects.create_user('fan', password='secret1')
        self.client = Client()
        self.client.force_login(self.user)

    def test_upload_image(self):
        upload = SimpleUploadedFile('crest.png', _png_bytes(), content_type='image/png')
        with override_settings(MEDIA_ROOT=self.media_root):
            resp = self.client.post('/api/upload', {'file': upload})
        self.assertEqual(resp.status_code, 201)
        url = resp.json()['url']
        self.assertTrue(url.startswith('/media/uploads/'))
        self.assertTrue(url.endswith('.png'))

    def test_non_image_rejected(self):
        upload = SimpleUploadedFile('notes.png', b'not really a png', content_type='image/png')
        with override_settings(MEDIA_ROOT=self.media_root):
            resp = self.client.post('/api/upload', {'file': upload})
        self.assertEqual(resp.status_code, 400)

    def test_too_large(self):
        upload = SimpleUploadedFile('crest.png', _png_bytes(), content_type='image/png')
        with override_settings(MEDIA_ROOT=self.media_root, UPLOAD_MAX_BYTES=10):
            resp = self.client.post('/api/upload', {'file': upload})
        self.assertEqual(resp.status_code, 400)

    def test_missing_file(self):
        self.assertEqual(self.client.post('/api/upload').status_code, 400)

    def test_anonymous(self):
        self.assertEqual(Client().post('/api/upload').status_code, 401)


# The admin pages use {% static %}; tests run without a collected manifest.
PLAIN_STATIC = {
    'default': {'BACKEND': 'django.core.files.storage.FileSystemStorage'},
    'staticfiles': {'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage'},
}


@override_settings(STORAGES=PLAIN_STATIC)
class AdminLoginLockoutTests(TestCase):
    def test_failed_admin_logins_are_recorded(self):
        from axes.models import AccessAttempt

        User.objects.create_user('shopadmin', password='secret1', is_staff=True)
        client = Client()
        for _ in range(2):
            client.post('/fw-manage/login/', {'username': 'shopadmin', 'password': 'wrong'})
        self.assertTrue(AccessAttempt.objects.filter(username='shopadmin').exists())

    def test_login_url_is_the_admin_login_page(self):
        resp = Client().get(settings.LOGIN_URL)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(settings.LOGIN_URL, '/fw-manage/login/')
