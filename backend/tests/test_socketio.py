def _events(sio_client, name):
    return [pkt for pkt in sio_client.get_received('/ws') if pkt['name'] == name]


def test_socket_connect(sio_client):
    assert sio_client.is_connected('/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'connected' for pkt in received)


def test_subscribe_sends_current_data(sio_client, make_user, make_game):
    make_game([(make_user(), 'civilian')])
    sio_client.get_received('/ws')  # flush

    sio_client.emit('subscribe', 'games', namespace='/ws')
    data = _events(sio_client, 'games:data')
    assert len(data) == 1
    assert len(data[0]['args'][0]) == 1

    sio_client.emit('subscribe', {'type': 'stats'}, namespace='/ws')
    stats = _events(sio_client, 'stats:data')
    assert stats[0]['args'][0]['games'] == 1


def test_unknown_type_is_an_error(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('subscribe', 'weather', namespace='/ws')
    assert _events(sio_client, 'error')


def test_subscribers_are_told_to_refetch(sio_client, client, make_user, login):
    user = make_user()
    login(user)
    sio_client.emit('subscribe', 'games', namespace='/ws')
    sio_client.get_received('/ws')

    res = client.post('/api/games/', json={'players': [{'player_id': user.id, 'role': 'civilian', 'slot_number': 1}]})
    assert res.status_code == 201
    assert _events(sio_client, 'games:update')

    sio_client.emit('unsubscribe', 'games', namespace='/ws')
    sio_client.get_received('/ws')
    client.post('/api/games/', json={})
    assert not _events(sio_client, 'games:update')
