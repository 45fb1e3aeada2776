# mcagent

`mcagent` is a library holding the core of a monitoring agent that runs
next to your containers. It reads the agent configuration, runs check
plugins, reports their results through an API client you supply, keeps
track of the host the agent is registered as, and decodes ECS task
metadata documents.

## Modules

- **`mcagent.api`**: data types shared with the monitoring service
  (`Host`, `HostStatus`, `CreateHostParam`, `FindHostsParam`,
  `CheckConfig`, `CheckStatus`, `CheckSource`, `CheckReport`), the
  `APIError` exception carrying a `status_code`, and the abstract `Client`
  interface with the operations the rest of the package calls.
- **`mcagent.config`**: `load(location, downloader=None)` reads a YAML
  configuration from a local path, an `http`/`https` URL or an `s3://`
  location, then fills unset values from the environment:
  `MACKEREL_APIBASE`, `MACKEREL_APIKEY`, `MACKEREL_ROLES` (comma
  separated), `MACKEREL_IGNORE_CONTAINER` (a regular expression) and
  `MACKEREL_HOST_STATUS_ON_START`. Without a location `default_config()`
  is used, whose root directory is `/var/tmp/mackerel-container-agent`.
  HTTP requests time out after 3 seconds. For `s3://bucket/key` the object
  is fetched over HTTPS as a publicly readable object unless you pass a
  `downloader` callable, which receives the split URL and returns bytes.
  Also provided: `parse_config`, `fetch`, `build_env`, `parse_roles`,
  `parse_host_status` and the `Config`, `MetricPlugin`, `CheckPlugin`,
  `Probe`, `ProbeExec`, `ProbeHTTP`, `ProbeTCP` and `Header` records.
- **`mcagent.loader`**: `Loader` loads the configuration and remembers it.
  Its coroutine `start()` polls the location every `polling_duration`
  seconds and returns once the loaded configuration differs from the last
  one; with no positive polling duration it waits until cancelled.
- **`mcagent.command`**: `Command` is either one string, run through
  `/bin/sh -c`, or a list of arguments run as is (`command_string`,
  `command_args`, `Command.from_yaml`).
- **`mcagent.cmdutil`**: `run_command(command, user="", env=(), timeout=0)`
  runs a command with extra `KEY=VALUE` environment entries, optionally as
  another user through `sudo -Eu`, and returns a `CommandResult` with
  `stdout`, `stderr` and `exit_code`. The timeout defaults to 30 seconds;
  on expiry the process group gets SIGTERM, and SIGKILL 10 seconds later,
  and `CommandTimedOut` is raised.
- **`mcagent.check`**: each `CheckPlugin` becomes a `PluginGenerator`.
  Exit code 0 is OK, 1 is WARNING, 2 is CRITICAL and anything else is
  UNKNOWN (`exit_code_to_status`); a failure to run, including a timeout,
  is UNKNOWN with the error as message. An OK result following an OK
  result is not reported again. `CheckManager.run(interval)` is a
  coroutine that collects results from all generators concurrently every
  interval and posts them; until a host id is set, and while posting
  fails, reports are kept and retried, up to 60 batches, with at most 3
  batches sent per post.
- **`mcagent.host`**: `HostResolver` finds, creates or updates the host,
  looking it up by custom identifier when one is set, and stores its id in
  the file `id` under the configured root. Failures raise
  `HostResolveError`, whose `retry` flag is true for non-API errors and
  for API errors with a status of 500 or more (`retry_from_error`).
  `retire(client, host_resolver)` retires the saved host, retrying three
  times 3 seconds apart, then removes the id file; it does nothing when no
  id has been saved.
- **`mcagent.ecs_types`**: typed records for ECS task metadata responses
  (`TaskResponse`, `ContainerResponse`, `LimitsResponse`, `Network`,
  `PortResponse`, `VolumeResponse`, `ErrorResponse`, `HealthStatus`) and
  the `ContainerHealthStatus` enum with its JSON encoding.

## Configuration file

```yaml
apikey: placeholder
roles:
  - My-Service:app
ignoreContainer: "^mackerel-.+$"
hostStatusOnStart: working
readinessProbe:
  http:
    path: /healthy
    port: 8080
  initialDelaySeconds: 10
  periodSeconds: 3
plugin:
  metrics:
    mysql:
      command: mackerel-plugin-mysql
  checks:
    procs:
      command: "check-procs --pattern=/usr/sbin/sshd --warning-under=1"
      user: sample-user
      env:
        FOO: FOO BAR
      timeoutSeconds: 45
      memo: check procs memo
```

A readiness probe takes exactly one of `exec`, `http` or `tcp`. An `exec`
probe needs a command, an `http` probe needs a path and a `tcp` probe
needs a port. The delay, period and timeout settings may not be negative.
`hostStatusOnStart` is one of `working`, `standby`, `maintenance` or
`poweroff`. Plugins are kept in order of their names. Invalid settings
raise `ConfigError`.

## Examples

```python
from mcagent.command import command_string, command_args
from mcagent.config import build_env, parse_roles

cmd = command_string("echo hello")
cmd.to_args()        # ['/bin/sh', '-c', 'echo hello']

args = command_args(["echo", "hello world"])
str(args)            # 'echo "hello world"'

parse_roles("Foo:xxx, Bar:yyy")   # ['Foo:xxx', 'Bar:yyy']
build_env({"QUX": "QUX QUUX", "FOO": "FOO BAR"})
# ['FOO=FOO BAR', 'QUX=QUX QUUX']
```

```python
from mcagent.ecs_types import ContainerHealthStatus, TaskResponse

ContainerHealthStatus.from_json('"HEALTHY"')   # ContainerHealthStatus.HEALTHY
task = TaskResponse.from_json('{"Cluster": "default", "KnownStatus": "RUNNING"}')
task.known_status                              # 'RUNNING'
```

## What this package does not do

- It has no command-line program and no agent main loop; you wire the
  loader, check manager and host resolver together yourself.
- It has no concrete API client: `mcagent.api.Client` is an interface you
  implement against the monitoring service.
- Metric plugins are parsed from the configuration but not run, and no
  metrics are collected or posted.
- Readiness probes are parsed and validated but not executed.
- There is no detection of the container platform (ECS, Kubernetes) and
  no gathering of host specs; `mcagent.ecs_types` only decodes metadata
  documents you fetch yourself.