# reservation-backend

This is a WSGI backend for an appointment reservation service. It defines
database tables for roles, users, employees, services, working days,
appointments and the services booked in each appointment. It serves three
HTTP endpoints:

- account registration;
- login, which issues a short-lived encrypted token (PASETO v4.local);
- a profile endpoint that is protected by that token.

Each request passes through two checks before it reaches the routes:

1. A CORS check. Only `http://localhost:3000` is accepted as an origin.
   Requests from any other origin, or with no `Origin` header, get `403`.
2. A per-client rate limit of 15 requests every 120 seconds. A client that
   goes over the limit gets `429` with a `Retry-After` header.

## Installation

```
pip install .
```

The database URL uses SQLAlchemy's `postgresql` dialect. SQLAlchemy's
default PostgreSQL driver, psycopg2, is not installed with this package.
Install it yourself before you connect.

To run the test suite:

```
pip install .[test]
pytest
```

## Configuration

Settings are read from environment variables. If there is a `.env` file in
the working directory, it is loaded first.

| Variable      | Meaning                                                              |
|---------------|----------------------------------------------------------------------|
| `DB_HOST`     | database host                                                        |
| `DB_PORT`     | database port (a number)                                             |
| `DB_USER`     | database user                                                        |
| `DB_PASSWORD` | database password                                                    |
| `DB_NAME`     | database name                                                        |
| `SECRET_KEY`  | 32-byte token key, written as 64 hexadecimal characters              |
| `PORT`        | listen address `host:port`, e.g. `:8080`                             |
| `APP_ENV`     | `development`/`dev`, or `production`/`prod`                          |
| `LOG_LEVEL`   | `debug`, `info`, `warn`/`warning`, `error`/`err` (default `info`)    |
| `LOG_FILE`    | log file path in production                                          |

An example `.env`:

```
DB_HOST=localhost
DB_PORT=5432
DB_USER=user
DB_PASSWORD=password
DB_NAME=reservations
SECRET_KEY=placeholder
PORT=:8080
APP_ENV=development
LOG_LEVEL=debug
```

Replace `placeholder` with a real 64-character hexadecimal key. The server
will not start unless `SECRET_KEY` holds a valid key.

If `PORT` has an empty host, the server listens on every interface. If
`PORT` is not set at all, it listens on `0.0.0.0:80`.

What gets logged depends on `APP_ENV`:

- `development` or `dev`: text lines on standard output, including the
  source location.
- `production` or `prod`: JSON lines on standard output and also in
  `LOG_FILE`.
  - The file is rotated at 10 MB.
  - Three backups are kept. They are gzip-compressed and deleted after
    30 days.
  - If `LOG_FILE` is empty, the file is written to the temporary directory.
- Any other value: text lines at info level, whatever `LOG_LEVEL` says.

## Creating the tables

```
reservation-migrate --migrate
```

This connects to the database and creates any tables that do not exist
yet. Without `--migrate`, the command only checks that the database can be
reached. The command exits with status 1 when the connection fails or the
migration fails.

Registration gives each new user the role whose code is `admin`. That role
must already exist in the `roles` table before anyone can register.

## Running the server

```
reservation-server
```

The server connects to the database, loads the token key and listens on
`PORT`. When it receives SIGINT or SIGTERM, it does the following:

1. Stops serving requests.
2. Waits up to 30 seconds for the server thread to finish.
3. Stops the rate limiter.
4. Closes the database connection pool.

## Endpoints

Fields are read from a form-encoded body. If a field is not in the body,
the query string is used instead. Responses from the handlers and the
middleware are JSON of the form `{"message": ..., "data": ...}`. Paths or
methods that match no route get werkzeug's standard `404` or `405` page.

### `POST /api/register`

- Fields: `email`, `password`, `name`, `phone`.
- On success, returns `201`. The body has `{"user": ...}` with the stored
  user record.
- Returns `400` in these cases:
  - the e-mail or phone is already taken;
  - the `admin` role is missing;
  - the account cannot be stored.

### `POST /api/login`

- Fields: `email`, `password`.
- On success, returns `201` with `{"token": ..., "user": ...}`. The token
  is valid for 35 seconds. It carries the claims `user_id`, `email` and
  `name`.
- Returns `404` when the user does not exist, the password is wrong, or
  the database cannot be reached.

### `GET /api/profile`

- Needs the header `Authorization: Bearer token`. A bare token without
  `Bearer ` is also accepted.
- Returns `200` with `user_id`. It also includes `email` and `name` when
  they are present in the token.
- Returns `401` when the token is missing, does not verify, has expired or
  has no `user_id`.

An `OPTIONS` preflight from the allowed origin is answered with `200` and
the CORS headers. It does not reach the routes.

For example, a browser client on the allowed origin would send:

```
curl -X POST http://localhost:8080/api/login \
     -H "Origin: http://localhost:3000" \
     -d email=someone@example.com -d password=password
```

## Using the pieces

These parts can also be used on their own:

- `reservation_backend.cors.cors` and `is_allowed_origin`
- `reservation_backend.rate_limiter.RateLimiter`:
  - `throttle(app)`
  - `reset()`
  - `stop()`
  - `parse_x_forwarded_for` and `client_ip`
- `reservation_backend.token_auth.paseto_middleware`, `extract_token` and
  `get_user_data`
- `reservation_backend.tokens`:
  - `SymmetricKey.from_hex`
  - `sign_token` and `verify_token`
  - `encrypt_v4_local` and `decrypt_v4_local`
  - `init_paseto`
- `reservation_backend.passwords.hash_password` and `compare_password`
- `reservation_backend.responses.success` and `error`
- `reservation_backend.logger.init_logger`, `bind_logger` and
  `current_logger`
- `reservation_backend.auth_service.login`, `register` and `user_exists`.
  Each takes an optional SQLAlchemy session.
- `reservation_backend.database.get_db`, `close_db`, `run_migrations` and
  `connection_url`
- `reservation_backend.models`:
  - the model classes;
  - `active_employees` and `active_services`.

`reservation_backend.server.build_app(rate_limiter)` combines the CORS
check, the rate limiter and the routes into the full WSGI application.

## What it does not do

The tables for employees, services, days and appointments exist only as
database models. There are no endpoints to create, list or book
appointments, or to manage employees, services or working days. Those
records must be managed directly in the database.