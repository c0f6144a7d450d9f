from fastapi.testclient import TestClient
from app.main import app

client = TestClient(app)
headers = {"X-User-Id": "citizen-1"}

print('ROOT:')
print(client.get('/').json())

print('\nHEALTH:')
print(client.get('/health').json())

print('\nDEPARTMENTS (Infrastructure):')
print(client.get('/classification/departments', params={'category': 'Infrastructure'}).json())

for label, path in (('DB HEALTH', '/health/db'), ('UNREAD COUNT', '/notifications/unread-count')):
    print(f'\n{label}:')
    try:
        resp = client.get(path, headers=headers)
        print(resp.status_code)
        try:
            print(resp.json())
        except Exception:
            print(resp.text)
    except Exception as e:
        print(f'{label} call raised exception:', e)
