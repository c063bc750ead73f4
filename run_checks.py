from fastapi.testclient import TestClient
from app.main import app

client = TestClient(app)

print('ROOT:')
print(client.get('/').json())

print('\nHEALTH:')
print(client.get('/health').json())

print('\nDB HEALTH:')
try:
    resp = client.get('/health/db')
    print(resp.status_code)
    try:
        print(resp.json())
    except Exception:
        print(resp.text)
except Exception as e:
    print('DB call raised exception:', e)

print('\nAI HEALTH:')
print(client.get('/health/ai').json())

print('\nSAFETY SCORE (New Delhi):')
print(client.get('/map/safety-score', params={'lat': 28.6139, 'lng': 77.2295}).json())

print('\nCHAT (guest):')
print(client.post('/chat', json={'message': 'What is GoSafe?'}).json())
