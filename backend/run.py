from mafiastats import create_app, socketio

app = create_app()

if __name__ == '__main__':
    # SocketIO server so the dashboard feed works in dev
    socketio.run(app, debug=True)
