from momentum import create_app, socketio
from momentum.services.sync import start_outbox_worker

app = create_app()
start_outbox_worker(app)

if __name__ == '__main__':
    # Use SocketIO server to enable websockets in dev
    socketio.run(app, debug=True)
