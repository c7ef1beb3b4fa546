import os


def test_audio_crud(client, media):
    res = client.post('/api/audios', json={'source': media('talk.mp3'), 'description': 'lesson 1'})
    assert res.status_code == 201
    audio = res.get_json()
    assert audio['name'] == 'Talk'
    assert audio['transcribed'] is True
    assert audio['transcription']['state'] == 'finished'

    res = client.get('/api/audios')
    assert [a['id'] for a in res.get_json()] == [audio['id']]

    res = client.patch(f"/api/audios/{audio['id']}", json={'name': 'Lesson 1', 'coverUrl': 'https://example.com/c.png'})
    assert res.status_code == 200
    assert res.get_json()['name'] == 'Lesson 1'
    assert res.get_json()['coverUrl'] == 'https://example.com/c.png'

    res = client.delete(f"/api/audios/{audio['id']}")
    assert res.status_code == 204
    assert client.get(f"/api/audios/{audio['id']}").status_code == 404


def test_duplicate_is_conflict(client, media):
    path = media('talk.mp3')
    assert client.post('/api/audios', json={'source': path}).status_code == 201
    res = client.post('/api/audios', json={'source': path})
    assert res.status_code == 409
    assert res.get_json()['type'] == 'DuplicateContentError'


def test_create_requires_source(client):
    assert client.post('/api/videos', json={}).status_code == 400


def test_unsupported_file_is_bad_request(client, media):
    res = client.post('/api/audios', json={'source': media('notes.txt')})
    assert res.status_code == 400
    assert res.get_json()['type'] == 'IngestionError'


def test_transcription_endpoints(client, media, stt):
    stt.error = RuntimeError('busy')
    audio = client.post('/api/audios', json={'source': media('talk.mp3')}).get_json()
    assert audio['transcription']['state'] == 'pending'
    stt.error = None

    res = client.post('/api/transcriptions', json={'targetType': 'Audio', 'targetId': audio['id']})
    assert res.status_code == 200
    tr = res.get_json()
    assert tr['state'] == 'finished'

    stt.text = 'Second pass.'
    res = client.post(f"/api/transcriptions/{tr['id']}/process")
    assert res.status_code == 200
    assert res.get_json()['result'][0]['text'] == 'Second pass.'
    assert client.get(f"/api/audios/{audio['id']}").get_json()['transcription']['result'][0]['text'] == 'Second pass.'

    segments = [{'startOffset': 0, 'endOffset': 100, 'text': 'fixed', 'words': []}]
    res = client.patch(f"/api/transcriptions/{tr['id']}", json={'result': segments})
    assert res.get_json()['result'] == segments


def test_transcription_invalid_target(client):
    res = client.post('/api/transcriptions', json={'targetType': 'Message', 'targetId': 'm1'})
    assert res.status_code == 400
    assert res.get_json()['type'] == 'InvalidTargetTypeError'
    assert client.post('/api/transcriptions/nope/process').status_code == 404


def test_recording_endpoints(client, media, monkeypatch):
    audio = client.post('/api/audios', json={'source': media('talk.mp3')}).get_json()

    res = client.post('/api/recordings', json={
        'filePath': media('take.wav'), 'targetType': 'Audio', 'targetId': audio['id'],
        'duration': 1500, 'referenceText': 'Hello world.',
    })
    assert res.status_code == 201
    recording = res.get_json()
    assert os.path.basename(recording['src']) == f"{recording['md5']}.wav"

    parent = client.get(f"/api/audios/{audio['id']}").get_json()
    assert parent['recordingsCount'] == 1
    assert parent['recordingsDuration'] == 1500

    monkeypatch.setattr('medialib.services.web_api.generate_speech_token', lambda: {'token': 't', 'region': 'eastus'})
    monkeypatch.setattr('medialib.services.assessment.pronunciation_assessment',
                        lambda *a, **kw: {'accuracyScore': 90.0, 'fluencyScore': 80.0, 'completenessScore': 100.0,
                                          'pronunciationScore': 88.0, 'prosodyScore': None,
                                          'contentAssessmentResult': None, 'detailResult': {}})
    res = client.post(f"/api/recordings/{recording['id']}/assess")
    assert res.status_code == 200
    assert res.get_json()['pronunciationScore'] == 88.0

    assert client.delete(f"/api/recordings/{recording['id']}").status_code == 204
    parent = client.get(f"/api/audios/{audio['id']}").get_json()
    assert parent['recordingsCount'] == 0
    assert parent['recordingsDuration'] == 0


def test_recording_requires_fields(client):
    res = client.post('/api/recordings', json={'targetType': 'Audio'})
    assert res.status_code == 400


def test_recording_negative_duration(client, media):
    audio = client.post('/api/audios', json={'source': media('talk.mp3')}).get_json()
    res = client.post('/api/recordings', json={
        'filePath': media('take.wav'), 'targetType': 'Audio', 'targetId': audio['id'], 'duration': -5,
    })
    assert res.status_code == 400


def test_downloads_dashboard(client):
    assert client.get('/api/downloads').get_json() == []
    res = client.post('/api/downloads/cancel', json={'name': 'nothing.mp3'})
    assert res.get_json() == {'name': 'nothing.mp3', 'cancelled': False}
    assert client.post('/api/downloads/cancel-all').get_json() == []


def test_upload_endpoint(client, media):
    audio = client.post('/api/audios', json={'source': media('talk.mp3')}).get_json()
    res = client.post(f"/api/audios/{audio['id']}/upload", json={'force': True})
    assert res.status_code == 200
    assert res.get_json()['isUploaded'] is True
    assert res.get_json()['uploadedAt'] >= audio['uploadedAt']


def test_failed_upload_reaches_caller(client, media, monkeypatch):
    audio = client.post('/api/audios', json={'source': media('talk.mp3')}).get_json()
    monkeypatch.setattr('medialib.services.storage.put_blob',
                        lambda key, path: {'success': False, 'data': {'error': 'bucket gone'}})

    res = client.post(f"/api/audios/{audio['id']}/upload", json={'force': True})

    assert res.status_code == 502
    assert res.get_json()['type'] == 'UploadError'


def test_failed_reprocess_reaches_caller(client, media, stt):
    audio = client.post('/api/audios', json={'source': media('talk.mp3')}).get_json()
    tr_id = audio['transcription']['id']
    stt.error = RuntimeError('stt quota exceeded')

    res = client.post(f"/api/transcriptions/{tr_id}/process")

    assert res.status_code == 502
    assert res.get_json()['type'] == 'TranscriptionError'
    assert 'stt quota exceeded' in res.get_json()['error']
    assert client.get(f"/api/audios/{audio['id']}").get_json()['transcription']['state'] == 'pending'


def test_transcribe_endpoint_inline(client, media, stt):
    audio = client.post('/api/audios', json={'source': media('talk.mp3')}).get_json()
    stt.text = 'Retranscribed.'

    res = client.post(f"/api/audios/{audio['id']}/transcribe")
    assert res.status_code == 200
    assert res.get_json()['transcription']['result'][0]['text'] == 'Retranscribed.'

    stt.error = RuntimeError('down')
    assert client.post(f"/api/audios/{audio['id']}/transcribe").status_code == 502
